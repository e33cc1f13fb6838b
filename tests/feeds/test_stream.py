"""Tests for the tick stream reader."""

import asyncio

import pytest
from websockets.exceptions import ConnectionClosedError

from tradedash_app.config.defaults import FeedParams
from tradedash_app.feeds.stream import TickStream


class FakeConnection:
    """Async context manager yielding scripted messages."""

    def __init__(self, messages, error=None):
        self.messages = messages
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
        if self.error is not None:
            raise self.error


class TimedOutHandshake:
    """Connection whose opening handshake times out."""

    async def __aenter__(self):
        raise asyncio.TimeoutError()

    async def __aexit__(self, *exc_info):
        return False


class ScriptedConnector:
    def __init__(self, *connections):
        self.connections = list(connections)
        self.urls = []

    def __call__(self, url):
        self.urls.append(url)
        if self.connections:
            return self.connections.pop(0)
        return FakeConnection([])


async def wait_for(predicate, attempts=100):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.01)


class TestTickStream:

    def test_url_uses_lowercase_exchange_symbol(self, catalog):
        stream = TickStream(FeedParams())
        assert stream.url_for(catalog.get("BTC/USD")) == "wss://stream.binance.com:9443/ws/btcusdt@trade"

    @pytest.mark.asyncio
    async def test_delivers_ticks_and_skips_bad_messages(self, catalog, clock):
        connector = ScriptedConnector(FakeConnection([
            '{"e": "trade", "p": "50000.5"}',
            "garbage",
            '{"result": null}',
            '{"e": "trade", "p": "50001.0"}',
        ]))
        stream = TickStream(FeedParams(stream_reconnect_delay=0.01), clock=clock, connect=connector)
        quotes = []

        task = asyncio.create_task(stream.listen(catalog.get("BTC/USD"), quotes.append))
        await wait_for(lambda: len(quotes) == 2)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert [q.price for q in quotes] == [50000.5, 50001.0]
        assert stream.messages_received >= 4
        assert not stream.connected

    @pytest.mark.asyncio
    async def test_reconnects_after_connection_loss(self, catalog, clock):
        connector = ScriptedConnector(
            FakeConnection(['{"p": "1.0"}'], error=ConnectionClosedError(None, None)),
            FakeConnection(['{"p": "2.0"}']),
        )
        stream = TickStream(FeedParams(stream_reconnect_delay=0.01), clock=clock, connect=connector)
        quotes = []

        task = asyncio.create_task(stream.listen(catalog.get("SOL/USD"), quotes.append))
        await wait_for(lambda: len(quotes) == 2)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert [q.price for q in quotes] == [1.0, 2.0]
        assert len(connector.urls) >= 2

    @pytest.mark.asyncio
    async def test_rejects_basket_asset(self, catalog):
        with pytest.raises(ValueError):
            await TickStream(FeedParams()).listen(catalog.get("EUR/USD"), lambda quote: None)

    @pytest.mark.asyncio
    async def test_reconnects_after_handshake_timeout(self, catalog, clock):
        connector = ScriptedConnector(
            TimedOutHandshake(),
            FakeConnection(['{"e": "trade", "p": "50000.5"}']),
        )
        stream = TickStream(FeedParams(stream_reconnect_delay=0.01), clock=clock, connect=connector)
        quotes = []

        task = asyncio.create_task(stream.listen(catalog.get("BTC/USD"), quotes.append))
        await wait_for(lambda: len(quotes) == 1)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert [q.price for q in quotes] == [50000.5]
        assert len(connector.urls) >= 2
