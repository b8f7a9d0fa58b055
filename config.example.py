# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use .env (local, gitignored) for machine-specific values.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "POCKET_APP_NAME": "App display name (default: pocket-todo).",
    "POCKET_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths (gitignored)
    "POCKET_DATA_DIR": "Local data directory for the store and the log file (default: .local/pocket_todo).",
    "POCKET_STORE_DB_PATH": "Key-value SQLite path (default: <data_dir>/store.sqlite3).",
    # Storage
    "POCKET_STORAGE_TIMEOUT_SECONDS": "Upper bound for one key-value read/write (default: 5).",
    # Notifications
    "POCKET_NOTIFICATIONS_ENABLED": "Grant notification permission to the console platform (true/false).",
    "POCKET_REMINDER_HOUR": "Hour of the due-date reminder, 0-23 (default: 9).",
    "POCKET_CREATED_NOTICE_DELAY_SECONDS": "Delay of the 'Task Created' notice (default: 2).",
    "POCKET_TIMEZONE": "IANA zone for reminders, e.g. Europe/Berlin (default: system local zone).",
}
