"""
tests/test_purge_task.py -- Tests for the background action-token purge loop.

Covers:
  - a database error in one purge is logged and the loop keeps running
  - cancellation ends the loop cleanly
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from types import SimpleNamespace

from sqlalchemy.exc import OperationalError

import api.main as api_main


class FlakyStore:
    """First purge fails the way a locked SQLite file does; later ones succeed."""

    def __init__(self) -> None:
        self.calls = 0

    def purge_expired_tokens(self) -> int:
        self.calls += 1
        if self.calls == 1:
            raise OperationalError("DELETE FROM action_tokens", {}, Exception("database is locked"))
        return 2


async def _run_until(store: FlakyStore, calls: int) -> asyncio.Task:
    app = SimpleNamespace(state=SimpleNamespace(user_store=store))
    task = asyncio.create_task(api_main._purge_loop(app))
    for _ in range(200):
        if store.calls >= calls or task.done():
            break
        await asyncio.sleep(0.01)
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task
    return task


def test_purge_survives_database_error(monkeypatch, caplog):
    fast = api_main.settings.model_copy(update={"token_purge_interval_seconds": 0})
    monkeypatch.setattr(api_main, "settings", fast)
    store = FlakyStore()

    with caplog.at_level(logging.INFO, logger="degenius.api"):
        task = asyncio.run(_run_until(store, calls=3))

    assert store.calls >= 3
    assert task.cancelled()
    assert "Action token purge failed" in caplog.text
    assert "Purged 2 expired action tokens" in caplog.text
