from datetime import date
from io import BytesIO

from telegram import InputFile, Update
from telegram.ext import ContextTypes

from handlers.common import get_tracker, log_user_action
from utils.logging import logger


async def export_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handler for /export: CSV of the visible expenses held on this device."""
    user_id = update.effective_user.id
    log_user_action(user_id, "requested a CSV export")
    tracker = get_tracker(context)

    if not tracker.expenses():
        await update.message.reply_text("📭 No expenses to export.")
        return

    content = (await tracker.export()).encode("utf-8")
    logger.debug(f"Exporting {len(content)} bytes of CSV for user {user_id}")
    filename = f"expenses_{date.today().isoformat()}.csv"
    await update.message.reply_document(
        document=InputFile(BytesIO(content), filename=filename),
        caption="📤 Your expenses",
    )
