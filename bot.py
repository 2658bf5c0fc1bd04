import traceback

from telegram import BotCommand
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

from config import BOT_TOKEN
from constants import BOT_COMMANDS
from handlers.add_expense import add_expense_conversation_handler
from handlers.export import export_handler
from handlers.list import handle_list_callback, list_expenses_handler
from handlers.start import start_handler
from handlers.sync import status_handler, sync_handler
from handlers.total import handle_chart_callback, total_handler
from tracker import ExpenseTracker
from utils.logging import logger


async def post_init(application: Application) -> None:
    """Register bot commands, load the local replica and start syncing."""
    logger.info("Setting up bot commands")
    commands = [
        BotCommand(cmd_info["command"], cmd_info["description"])
        for cmd_info in BOT_COMMANDS.values()
        if cmd_info.get("frequency") in ["high", "medium"] and cmd_info["command"] != "start"
    ]
    await application.bot.set_my_commands(commands)
    logger.info("Bot commands configured successfully")

    logger.info("Starting expense tracker")
    tracker = ExpenseTracker.from_config()
    application.bot_data["tracker"] = tracker
    result = await tracker.start()
    if not result.success:
        logger.warning(f"Initial sync failed, starting offline: {result.error}")


async def shutdown(application: Application) -> None:
    """Stop background syncing and close local storage."""
    tracker = application.bot_data.get("tracker")
    if tracker is not None:
        logger.info("Stopping expense tracker")
        await tracker.stop()


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in the dispatcher."""
    tb_string = "".join(traceback.format_exception(None, context.error, context.error.__traceback__))
    logger.error(f"Exception while handling an update: {context.error}\n{tb_string}")

    if update and getattr(update, "effective_message", None):
        await update.effective_message.reply_text(
            "❌ Sorry, something went wrong. The error has been logged.\n\nPlease try again."
        )

    # If it's a callback query, we need to answer it to clear the loading state
    if update and getattr(update, "callback_query", None):
        try:
            await update.callback_query.answer("An error occurred. Please try again.")
        except Exception as e:
            logger.error(f"Failed to answer callback query: {e}")


def build_application(token: str) -> Application:
    app = Application.builder().token(token).post_init(post_init).post_shutdown(shutdown).build()

    handlers = [
        CommandHandler(BOT_COMMANDS["start"]["command"], start_handler),
        CommandHandler(BOT_COMMANDS["list"]["command"], list_expenses_handler),
        CommandHandler(BOT_COMMANDS["total"]["command"], total_handler),
        CommandHandler(BOT_COMMANDS["sync"]["command"], sync_handler),
        CommandHandler(BOT_COMMANDS["status"]["command"], status_handler),
        CommandHandler(BOT_COMMANDS["export"]["command"], export_handler),
        CallbackQueryHandler(handle_list_callback, pattern=r"^(noop$|list_(page|detail|delete):)"),
        CallbackQueryHandler(handle_chart_callback, pattern=r"^chart:(bar|pie)$"),
        add_expense_conversation_handler,
    ]

    logger.info("Registering command handlers")
    for handler in handlers:
        app.add_handler(handler)
    app.add_error_handler(error_handler)
    return app


if __name__ == "__main__":
    logger.info("Starting Expense Tracker Bot")
    if not BOT_TOKEN:
        logger.error("BOT_TOKEN not found in environment variables")
        raise ValueError("BOT_TOKEN environment variable is required")

    application = build_application(BOT_TOKEN)
    logger.info("Starting bot polling")
    application.run_polling()
