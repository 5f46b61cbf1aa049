"""Logging setup for paprika-sync
===============================

Every module gets its logger through get_logger(__name__); the first call
applies config.LOGGING_CONFIG (stderr console + rotating file under
data/logs/paprika_sync.log, 10MB x 5).

    from tools.logging_utils import get_logger

    logger = get_logger(__name__)
    logger.info("📂 Syncing categories...")

User-facing output goes through the rich console in tools/progress_ui.py, not
the logger.
"""

import logging
import logging.config
import os
import threading

from config import DATA_DIR, LOGGING_CONFIG

_setup_lock = threading.Lock()
_configured = False


def setup_logging() -> None:
    """Apply LOGGING_CONFIG once per process. Later calls are no-ops."""
    global _configured
    with _setup_lock:
        if _configured:
            return
        try:
            os.makedirs(str(DATA_DIR / "logs"), exist_ok=True)
            logging.config.dictConfig(LOGGING_CONFIG)
        except (OSError, ValueError) as e:
            # Unwritable data dir: keep going with stderr-only logging
            logging.basicConfig(level=logging.WARNING)
            logging.getLogger(__name__).warning(f"⚠️ Logging setup failed: {e}")
        _configured = True


def get_logger(name: str) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)


# Level implied by the emoji a message starts with
EMOJI_LEVELS = {
    "✅": logging.INFO,      # pass finished
    "📂": logging.INFO,      # category pass
    "🍲": logging.INFO,      # recipe pass
    "⬆️": logging.INFO,      # push to remote
    "🗑️": logging.INFO,      # deletions
    "💾": logging.DEBUG,     # store writes
    "⚠️": logging.WARNING,   # per-item failures
    "🛑": logging.WARNING,   # stop requested
    "❌": logging.ERROR,     # fatal
}


def log_with_emoji(logger: logging.Logger, message: str) -> None:
    """
    Log at the level implied by the message's leading emoji (INFO if none).

        log_with_emoji(logger, "⚠️ 3 recipes failed")   # WARNING
    """
    level = logging.INFO
    for emoji, mapped in EMOJI_LEVELS.items():
        if message.startswith(emoji):
            level = mapped
            break
    logger.log(level, message)
