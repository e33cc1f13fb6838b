"""
Persistence module.

Store interfaces for trades, balances and alerts with in-memory and
SQLite implementations.
"""
