# Keys inside the local blob store
EXPENSES_KEY = "expenses"
WATERMARK_KEY = "last_synced"

PROVISIONAL_PREFIX = "local_"

MAX_DESCRIPTION_LENGTH = 200
MAX_AMOUNT = 1_000_000_000

BOT_COMMANDS = {
    "start": {
        "command": "start",
        "description": "Start the bot",
        "help": "Start the bot and show available commands",
        "frequency": "high",
    },
    "add": {
        "command": "add",
        "description": "Add an expense",
        "help": "Record a new expense, works offline too",
        "frequency": "high",
    },
    "list": {
        "command": "list",
        "description": "List expenses",
        "help": "View and delete your expenses",
        "frequency": "high",
    },
    "total": {
        "command": "total",
        "description": "Totals by category",
        "help": "See the total spent per category with a chart",
        "frequency": "high",
    },
    "sync": {
        "command": "sync",
        "description": "Sync now",
        "help": "Synchronize your expenses with the server right away",
        "frequency": "medium",
    },
    "status": {
        "command": "status",
        "description": "Sync status",
        "help": "Show connectivity, last sync time and pending changes",
        "frequency": "medium",
    },
    "export": {
        "command": "export",
        "description": "Export expenses",
        "help": "Download your expenses as a CSV file",
        "frequency": "medium",
    },
}

# Pagination settings
ITEMS_PER_PAGE = 5  # Number of items to show per page in the list view

# Generate usage instructions from commands
BOT_USAGE_INSTRUCTIONS = "\n".join(
    f"Use /{cmd_info['command']}: {cmd_info['help']}."
    for cmd_info in BOT_COMMANDS.values()
    if cmd_info["command"] != "start"
)

# Amounts carry no currency of their own; this label is used for display only
DISPLAY_CURRENCY = "USD"
