"""pocket_todo: users, tasks, categories and due-date reminders over a key-value store."""
