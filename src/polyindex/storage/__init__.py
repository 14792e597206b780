"""DuckDB-backed persistence for users, sessions, indexes and stars."""
