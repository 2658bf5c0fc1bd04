"""Common utilities for handler functionality."""

from telegram import ReplyKeyboardRemove, Update
from telegram.ext import ContextTypes, ConversationHandler

from constants import DISPLAY_CURRENCY
from models import Expense
from tracker import ExpenseTracker
from utils.logging import logger


def get_tracker(context: ContextTypes.DEFAULT_TYPE) -> ExpenseTracker:
    """The tracker created in post_init for this application."""
    return context.application.bot_data["tracker"]


async def cancel(update: Update, _: ContextTypes.DEFAULT_TYPE):
    """Common cancel function for conversation handlers."""
    await update.message.reply_text("Operation canceled.", reply_markup=ReplyKeyboardRemove())
    return ConversationHandler.END


def log_user_action(user_id: int, action: str) -> None:
    logger.info(f"User {user_id} {action}")


def format_amount(amount) -> str:
    return f"{amount:.2f} {DISPLAY_CURRENCY}"


def format_expense(expense: Expense) -> str:
    sync_mark = "✅ synced" if expense.synced else "🕓 pending sync"
    return (
        f"Date: {expense.date.isoformat()}\n"
        f"Amount: {format_amount(expense.amount)}\n"
        f"Category: {expense.category.value.capitalize()}\n"
        f"Description: {expense.description}\n"
        f"Status: {sync_mark}"
    )
