"""Adapters binding the core ports to zKillboard, ESI, SQLite and chat webhooks."""
