from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from constants import DISPLAY_CURRENCY
from handlers.common import format_amount, get_tracker
from utils.logging import logger
from utils.plotting import ChartError, generate_category_chart


async def total_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handler for /total: totals per category, deleted expenses excluded."""
    user_id = update.effective_user.id
    logger.info(f"User {user_id} requested totals by category.")
    tracker = get_tracker(context)

    totals = tracker.total_by_category()
    if not totals:
        await update.message.reply_text("📭 No expenses found.")
        return

    grand_total, top = tracker.summary()
    lines = ["💰 Total spent by category:\n", "Category      | Total", "------------- | ----------"]
    for category, total in sorted(totals.items(), key=lambda item: item[1], reverse=True):
        lines.append(f"{category.value.capitalize():<13} | {total:>10.2f}")
    lines.append(f"\nTotal: {format_amount(grand_total)}")
    lines.append("Top: " + ", ".join(category.value.capitalize() for category, _ in top))

    keyboard = [[
        InlineKeyboardButton("📊 Bar chart", callback_data="chart:bar"),
        InlineKeyboardButton("🥧 Pie chart", callback_data="chart:pie"),
    ]]
    text = "\n".join(lines)
    await update.message.reply_text(
        f"```\n{text}\n```",
        parse_mode="Markdown",
        reply_markup=InlineKeyboardMarkup(keyboard),
    )


async def handle_chart_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    chart_type = query.data.split(":")[1]

    try:
        image = generate_category_chart(get_tracker(context).total_by_category(), DISPLAY_CURRENCY, chart_type)
    except ChartError as e:
        await query.message.reply_text(f"❌ {e}")
        return

    await query.message.reply_photo(photo=image, caption="Expenses by category")
