from telegram import Update
from telegram.ext import ContextTypes

from constants import BOT_USAGE_INSTRUCTIONS
from handlers.common import get_tracker, log_user_action


async def start_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user_id = update.effective_user.id
    log_user_action(user_id, "started the bot")

    status = get_tracker(context).status()
    connection = "🟢 Online" if status.online else "🔴 Offline, changes are kept on this device"
    await update.message.reply_text(
        f"👋 Welcome to the Expense Tracker Bot!\n{connection}\n\n{BOT_USAGE_INSTRUCTIONS}"
    )
