"""
Persistence.

- kv_store.py: SQLite and in-memory JSON key-value stores
- local_storage.py: typed accessors using the "aclio_*" keys
"""
