from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from constants import ITEMS_PER_PAGE
from handlers.common import format_amount, format_expense, get_tracker
from replica import ReplicaWriteError
from tracker import ExpenseTracker
from utils.logging import logger
from utils.pagination import create_pagination_buttons, get_current_page_from_markup, page_count


async def show_expenses_page(update: Update, tracker: ExpenseTracker, page: int = 0):
    """Show a page of visible expenses with navigation buttons."""
    expenses = tracker.expenses()
    if not expenses:
        if update.callback_query:
            await update.callback_query.edit_message_text("📭 No expenses found.")
        else:
            await update.message.reply_text("📭 No expenses found.")
        return

    total_pages = page_count(len(expenses), ITEMS_PER_PAGE)
    # Deletions can leave us past the last page
    page = min(page, total_pages - 1)
    rows = expenses[page * ITEMS_PER_PAGE : (page + 1) * ITEMS_PER_PAGE]

    keyboard = []
    for expense in rows:
        button_text = (
            f"{expense.date.isoformat()} | {format_amount(expense.amount)} | "
            f"{expense.category.value} | {expense.description[:20]}"
        )
        if not expense.synced:
            button_text = f"🕓 {button_text}"
        keyboard.append([InlineKeyboardButton(button_text, callback_data=f"list_detail:{expense.key}")])

    keyboard.append(create_pagination_buttons(page, total_pages, "list_page"))

    reply_markup = InlineKeyboardMarkup(keyboard)
    text = f"Your expenses (Page {page + 1}/{total_pages}):"
    if update.callback_query:
        await update.callback_query.edit_message_text(text=text, reply_markup=reply_markup)
    else:
        await update.message.reply_text(text=text, reply_markup=reply_markup)


async def list_expenses_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handler for /list command."""
    logger.info(f"User {update.effective_user.id} requested a list of expenses.")
    await show_expenses_page(update, get_tracker(context))


async def handle_list_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle callbacks for list pagination, details and deletion."""
    query = update.callback_query
    await query.answer()
    tracker = get_tracker(context)

    data = query.data
    if data == "noop":
        return

    if data.startswith("list_page:"):
        await show_expenses_page(update, tracker, int(data.split(":")[1]))

    elif data.startswith("list_detail:"):
        key = data.split(":", 1)[1]
        current_page = get_current_page_from_markup(query.message.reply_markup)
        expense = tracker.get(key)
        if expense is None:
            await query.edit_message_text("❌ Expense not found.")
            return

        keyboard = [
            [InlineKeyboardButton("« Back to list", callback_data=f"list_page:{current_page}")],
            [InlineKeyboardButton("🗑️ Delete", callback_data=f"list_delete:{current_page}:{key}")],
        ]
        await query.edit_message_text(
            text=f"📝 Expense Details:\n\n{format_expense(expense)}",
            reply_markup=InlineKeyboardMarkup(keyboard),
        )

    elif data.startswith("list_delete:"):
        _, page, key = data.split(":", 2)
        logger.info(f"User {query.from_user.id} deleting expense {key}")
        try:
            deleted = await tracker.delete_expense(key)
        except ReplicaWriteError as e:
            logger.error(f"Failed to delete expense {key}: {e}")
            deleted = False

        if deleted:
            await query.edit_message_text("✅ Expense deleted successfully!")
            await show_expenses_page(update, tracker, int(page))
        else:
            await query.edit_message_text(
                "❌ Failed to delete expense. It might have been already removed.",
                reply_markup=InlineKeyboardMarkup(
                    [[InlineKeyboardButton("« Back to list", callback_data=f"list_page:{page}")]]
                ),
            )
