"""
Operator tools for the ledger server.

- ledger_cli: list shard years, take and list backups, print statistics
"""
