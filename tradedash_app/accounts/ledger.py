"""
Practice and live balance ledger.

Every write goes to the balance store before the in-memory balance moves,
so a failed write leaves both sides unchanged. The settlement path opts out
of that rollback: a credit owed for a finished trade is kept in memory even
if the store is unavailable.

Balances are owned by the event loop. The async variants hold a lock from
the balance read until the in-memory update, so a settle credit and the
next open debit apply one after another.
"""

import asyncio
from typing import Optional

import structlog

from ..config.defaults import AccountParams
from ..errors import PersistenceError
from ..persistence.stores import BalanceStore
from ..state.models import AccountMode

logger = structlog.get_logger(__name__)


class BalanceLedger:
    """Balances per account mode, persisted through a BalanceStore."""

    def __init__(self, store: BalanceStore, account_id: str, params: Optional[AccountParams] = None):
        self.store = store
        self.account_id = account_id
        self.params = params or AccountParams()
        self._balances: dict[AccountMode, float] = {
            AccountMode.PRACTICE: self.params.initial_practice_balance,
            AccountMode.LIVE: self.params.initial_live_balance,
        }
        self.logger = logger.bind(account_id=account_id)
        self._lock: Optional[asyncio.Lock] = None

    def load(self) -> dict[AccountMode, float]:
        """Read both modes from the store, seeding missing rows with the defaults."""
        seeds = {
            AccountMode.PRACTICE: self.params.initial_practice_balance,
            AccountMode.LIVE: self.params.initial_live_balance,
        }
        for mode, seed in seeds.items():
            stored = self.store.load(self.account_id, mode)
            if stored is None:
                self.store.save(self.account_id, mode, seed)
                stored = seed
                self.logger.info("Seeded balance", mode=mode.value, balance=seed)
            self._balances[mode] = self._normalize(mode, stored)
        return self.snapshot()

    def balance(self, mode: AccountMode) -> float:
        return self._balances[mode]

    def debit(self, mode: AccountMode, amount: float) -> float:
        """
        Remove ``amount`` from the balance of ``mode``.

        Raises:
            ValueError: If the amount is negative or exceeds the balance
            PersistenceError: If the store write fails (balance unchanged)
        """
        new_balance = self._debited(mode, amount)
        self.store.save(self.account_id, mode, new_balance)
        return self._apply(mode, new_balance, operation="debit", amount=amount)

    def credit(self, mode: AccountMode, amount: float, rollback_on_failure: bool = True) -> float:
        """
        Add ``amount`` to the balance of ``mode``.

        With ``rollback_on_failure`` false a failed store write is logged and
        the in-memory balance still moves.
        """
        new_balance = self._credited(mode, amount)
        try:
            self.store.save(self.account_id, mode, new_balance)
        except PersistenceError as e:
            self._on_credit_failure(mode, amount, new_balance, e, rollback_on_failure)
        return self._apply(mode, new_balance, operation="credit", amount=amount)

    async def debit_async(self, mode: AccountMode, amount: float) -> float:
        """
        Event-loop variant of ``debit``.

        The balance is read and written on the loop under the ledger lock;
        only the store write runs in a worker thread. Concurrent debits and
        credits therefore apply one after another.
        """
        async with self._get_lock():
            new_balance = self._debited(mode, amount)
            await asyncio.to_thread(self.store.save, self.account_id, mode, new_balance)
            return self._apply(mode, new_balance, operation="debit", amount=amount)

    async def credit_async(self, mode: AccountMode, amount: float, rollback_on_failure: bool = True) -> float:
        """Event-loop variant of ``credit``, serialized like ``debit_async``."""
        async with self._get_lock():
            new_balance = self._credited(mode, amount)
            try:
                await asyncio.to_thread(self.store.save, self.account_id, mode, new_balance)
            except PersistenceError as e:
                self._on_credit_failure(mode, amount, new_balance, e, rollback_on_failure)
            return self._apply(mode, new_balance, operation="credit", amount=amount)

    def snapshot(self) -> dict[AccountMode, float]:
        return dict(self._balances)

    def _get_lock(self) -> asyncio.Lock:
        # Bound to the loop that first mutates a balance.
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _debited(self, mode: AccountMode, amount: float) -> float:
        if amount < 0:
            raise ValueError(f"Debit amount must be non-negative, got {amount}")
        current = self._balances[mode]
        if amount > current:
            raise ValueError(f"Debit of {amount} exceeds {mode.value} balance {current}")
        return self._normalize(mode, current - amount)

    def _credited(self, mode: AccountMode, amount: float) -> float:
        if amount < 0:
            raise ValueError(f"Credit amount must be non-negative, got {amount}")
        return self._normalize(mode, self._balances[mode] + amount)

    def _on_credit_failure(
        self,
        mode: AccountMode,
        amount: float,
        new_balance: float,
        error: PersistenceError,
        rollback_on_failure: bool
    ) -> None:
        if rollback_on_failure:
            raise error
        self.logger.error(
            "Balance credit kept in memory after store failure",
            mode=mode.value,
            amount=amount,
            balance=new_balance,
            error=str(error)
        )

    def _apply(self, mode: AccountMode, new_balance: float, operation: str, amount: float) -> float:
        previous = self._balances[mode]
        self._balances[mode] = new_balance
        self.logger.info(
            "Balance updated",
            operation=operation,
            mode=mode.value,
            amount=amount,
            previous=previous,
            balance=new_balance
        )
        return new_balance

    @staticmethod
    def _normalize(mode: AccountMode, value: float) -> float:
        value = round(value, 2)
        if mode == AccountMode.PRACTICE:
            return max(0.0, value)
        return value
