from telegram import Update
from telegram.ext import ContextTypes

from handlers.common import get_tracker, log_user_action


async def sync_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handler for /sync: explicit synchronization, reports failure without touching data."""
    log_user_action(update.effective_user.id, "requested a sync")
    tracker = get_tracker(context)

    await update.message.reply_text("🔄 Syncing...")
    result = await tracker.sync_now()
    if result.success:
        await update.message.reply_text(
            f"✅ Sync complete. Sent {result.pushed}, received {result.pulled} changes."
        )
    else:
        pending = tracker.status().pending
        await update.message.reply_text(
            f"❌ Sync failed: {result.error}\n"
            f"Your {pending} pending change(s) are kept and will be sent later."
        )


async def status_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handler for /status."""
    status = get_tracker(context).status()
    last = status.last_synced.strftime("%Y-%m-%d %H:%M:%S UTC") if status.last_synced else "never"
    lines = [
        f"Connection: {'🟢 Online' if status.online else '🔴 Offline'}",
        f"Last sync: {last}",
        f"Pending changes: {status.pending}",
    ]
    if status.syncing:
        lines.append("🔄 A sync is running right now")
    if status.last_error:
        lines.append(f"Last error: {status.last_error}")
    await update.message.reply_text("\n".join(lines))
