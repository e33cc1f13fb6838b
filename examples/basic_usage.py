#!/usr/bin/env python3
"""
Basic Usage Example - TradeDash trading session

Runs a session against the configured price endpoints, waits for a BTC/USD
price, opens a short practice trade and prints the session snapshot until it
settles. Trades, balances and alerts are kept in a local SQLite file.

Run: python examples/basic_usage.py [--db tradedash.db] [--json-logs]
"""

import argparse
import asyncio

from tradedash_app.config.alert_delivery import AlertDeliveryConfig, create_stdout_destination
from tradedash_app.config.loader import ConfigLoader
from tradedash_app.engine import SessionSnapshot, TradingSession
from tradedash_app.logging import configure_logging
from tradedash_app.persistence.sqlite_store import (
    SQLiteAlertStore,
    SQLiteBalanceStore,
    SQLiteTradeStore,
)


def print_snapshot(snapshot: SessionSnapshot) -> None:
    price = f"{snapshot.price:,.2f}" if snapshot.price is not None else "--"
    print(f"{snapshot.selected_symbol}: {price} [{snapshot.staleness.value}]"
          f"{' live' if snapshot.stream_live else ''}")
    print(f"  Balance ({snapshot.account_mode.value}): "
          f"${snapshot.balances[snapshot.account_mode]:,.2f}")
    if snapshot.active_trade is not None:
        trade = snapshot.active_trade
        print(f"  Active: {trade.direction.value} {trade.symbol} ${trade.stake:,.2f} "
              f"@ {trade.entry_price:,.2f}, {snapshot.remaining_seconds:.0f}s left")
    for toast in snapshot.toasts:
        print(f"  [{toast.severity.value}] {toast.message}")


async def wait_for_price(session: TradingSession, timeout: float = 15.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if session.snapshot().price_valid:
            return True
        await asyncio.sleep(0.5)
    return False


async def run(db_path: str) -> None:
    config = ConfigLoader.create().load()
    session = TradingSession(
        config=config,
        trade_store=SQLiteTradeStore(db_path),
        balance_store=SQLiteBalanceStore(db_path),
        alert_store=SQLiteAlertStore(db_path),
        delivery_config=AlertDeliveryConfig(destinations=[create_stdout_destination(format="pretty")]),
    )

    async with session:
        session.select_asset("BTC/USD")
        if not await wait_for_price(session):
            print("No price received, check feed.api_base_url in config/settings.yaml")
            return

        print_snapshot(session.snapshot())
        result = await session.open_trade("long", 10, 5)
        if not result.success:
            print(f"Trade rejected: {result.reason}")
            return

        while session.snapshot().active_trade is not None:
            print_snapshot(session.snapshot())
            await asyncio.sleep(1)

        print_snapshot(session.snapshot())
        for trade in session.snapshot().history[:5]:
            print(f"  {trade.opened_at:%H:%M:%S} {trade.symbol} {trade.direction.value} "
                  f"{trade.status.value} {trade.profit_loss or 0.0:+.2f}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a short TradeDash session")
    parser.add_argument("--db", default="tradedash.db", help="SQLite database path")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    configure_logging(level=args.log_level, format_json=args.json_logs)
    asyncio.run(run(args.db))


if __name__ == "__main__":
    main()
