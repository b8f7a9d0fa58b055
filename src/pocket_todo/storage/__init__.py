"""
Key-value storage.

Components:
- kv_store.py: SQLite-backed KeyValueStore
"""
