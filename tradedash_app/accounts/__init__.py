"""
Account balance module.

The ledger is the only writer of practice and live balances.
"""

from .ledger import BalanceLedger

__all__ = ["BalanceLedger"]
