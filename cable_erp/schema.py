SCHEMA_SQL = r"""
-- Durable key-value area: one JSON blob per entity-type key
CREATE TABLE IF NOT EXISTS kv_store (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL,
  updated_at TEXT NOT NULL              -- ISO datetime
);

-- Application users (login)
CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  username TEXT NOT NULL UNIQUE,
  password_hash TEXT NOT NULL,
  full_name TEXT,
  role TEXT NOT NULL DEFAULT 'user',     -- admin / user
  is_active INTEGER NOT NULL DEFAULT 1,
  created_at TEXT NOT NULL
);
"""
