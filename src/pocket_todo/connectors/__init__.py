"""Front-end connectors (console REPL, background event loop)."""
