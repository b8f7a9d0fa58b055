"""
Record subsystem.

Components:
- models.py: data structures (User, CurrentUser, Category, Task, TaskView)
- store.py: JSON-array collections over a KeyValueStore
- views.py: filtering / ordering / counters for task lists
- dates.py: ISO-8601 helpers
- api.py: small high-level helpers used by front-ends (save + remind, toggle, remove)
"""
