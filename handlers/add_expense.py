from telegram import ReplyKeyboardMarkup, ReplyKeyboardRemove, Update
from telegram.ext import CommandHandler, ContextTypes, ConversationHandler, MessageHandler, filters

from constants import BOT_COMMANDS
from handlers.common import cancel, format_expense, get_tracker, log_user_action
from models import Category
from replica import ReplicaWriteError
from utils.validation import validate_amount, validate_category, validate_date, validate_description

# Define states for the conversation
DESCRIPTION, AMOUNT, CATEGORY, DATE = range(4)


def category_keyboard() -> ReplyKeyboardMarkup:
    names = [category.value.capitalize() for category in Category]
    # Three buttons per row
    keyboard = [names[i : i + 3] for i in range(0, len(names), 3)]
    return ReplyKeyboardMarkup(keyboard, one_time_keyboard=True, resize_keyboard=True)


async def start_add(update: Update, _: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text("What was it? Send a short description:", reply_markup=ReplyKeyboardRemove())
    return DESCRIPTION


async def handle_description(update: Update, context: ContextTypes.DEFAULT_TYPE):
    is_valid, result = validate_description(update.message.text)
    if not is_valid:
        await update.message.reply_text(f"❌ {result}\nPlease send the description again:")
        return DESCRIPTION
    context.user_data["description"] = result
    await update.message.reply_text("Enter the amount:")
    return AMOUNT


async def handle_amount(update: Update, context: ContextTypes.DEFAULT_TYPE):
    is_valid, result = validate_amount(update.message.text)
    if not is_valid:
        await update.message.reply_text(f"❌ {result}\nPlease enter the amount again:")
        return AMOUNT
    context.user_data["amount"] = result
    await update.message.reply_text("Choose the category:", reply_markup=category_keyboard())
    return CATEGORY


async def handle_category(update: Update, context: ContextTypes.DEFAULT_TYPE):
    is_valid, result = validate_category(update.message.text)
    if not is_valid:
        await update.message.reply_text(f"❌ {result}", reply_markup=category_keyboard())
        return CATEGORY
    context.user_data["category"] = result

    reply_markup = ReplyKeyboardMarkup([["Today"]], one_time_keyboard=True, resize_keyboard=True)
    await update.message.reply_text(
        "Enter the date (YYYY-MM-DD or DD-MM-YYYY) or press 'Today':",
        reply_markup=reply_markup,
    )
    return DATE


async def handle_date(update: Update, context: ContextTypes.DEFAULT_TYPE):
    is_valid, result = validate_date(update.message.text)
    if not is_valid:
        await update.message.reply_text(f"❌ {result}\nPlease enter the date again:")
        return DATE
    context.user_data["date"] = result
    await save_expense(update, context)
    return ConversationHandler.END


async def save_expense(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user_id = update.effective_user.id
    tracker = get_tracker(context)
    data = context.user_data
    try:
        expense = await tracker.add_expense(
            amount=data["amount"],
            category=data["category"],
            description=data["description"],
            spent_on=data["date"],
        )
    except (ValueError, ReplicaWriteError) as e:
        await update.message.reply_text(f"❌ Could not save the expense: {e}", reply_markup=ReplyKeyboardRemove())
        return
    finally:
        data.clear()

    log_user_action(user_id, f"added expense {expense.key}")
    note = "" if tracker.status().online else "\n\n🔴 Offline: it will be synced once the server is reachable."
    await update.message.reply_text(
        f"✅ Expense added!\n{format_expense(expense)}{note}",
        reply_markup=ReplyKeyboardRemove(),
    )


add_expense_conversation_handler = ConversationHandler(
    entry_points=[CommandHandler(BOT_COMMANDS["add"]["command"], start_add)],
    states={
        DESCRIPTION: [MessageHandler(filters.TEXT & ~filters.COMMAND, handle_description)],
        AMOUNT: [MessageHandler(filters.TEXT & ~filters.COMMAND, handle_amount)],
        CATEGORY: [MessageHandler(filters.TEXT & ~filters.COMMAND, handle_category)],
        DATE: [MessageHandler(filters.TEXT & ~filters.COMMAND, handle_date)],
    },
    fallbacks=[CommandHandler("cancel", cancel)],
)
