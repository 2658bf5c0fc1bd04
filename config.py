import os

from dotenv import load_dotenv

from utils.logging import logger


logger.info("Loading environment variables")
load_dotenv()

# Only needed by bot.py, checked there so the sync core can run without it
BOT_TOKEN = os.getenv("BOT_TOKEN")

API_URL = os.getenv("API_URL", "http://localhost:3000/api").rstrip("/")

REMOTE_BACKEND = os.getenv("REMOTE_BACKEND", "http").lower()
if REMOTE_BACKEND not in ("http", "memory"):
    logger.error(f"Unknown REMOTE_BACKEND '{REMOTE_BACKEND}'")
    raise ValueError("REMOTE_BACKEND must be either 'http' or 'memory'")

STORAGE_PATH = os.getenv("STORAGE_PATH", "expenses.db")

try:
    SYNC_INTERVAL_SECONDS = float(os.getenv("SYNC_INTERVAL_SECONDS", "60"))
    SYNC_TIMEOUT_SECONDS = float(os.getenv("SYNC_TIMEOUT_SECONDS", "10"))
except ValueError as e:
    logger.error(f"Invalid sync timing configuration: {e}")
    raise ValueError("SYNC_INTERVAL_SECONDS and SYNC_TIMEOUT_SECONDS must be numbers") from e

if SYNC_INTERVAL_SECONDS <= 0 or SYNC_TIMEOUT_SECONDS <= 0:
    logger.error("Sync interval and timeout must be positive")
    raise ValueError("SYNC_INTERVAL_SECONDS and SYNC_TIMEOUT_SECONDS must be positive")

logger.info("Configuration loaded successfully")
