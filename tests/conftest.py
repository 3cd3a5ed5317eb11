"""Shared fixtures for the ledger test suites.

Every test gets a fresh temp-file SQLite DatabaseManager, so tests never
share state and never touch the configured database.
"""
import os
import shutil
import tempfile
from datetime import date

import pytest

from database import DatabaseManager
from ledger.service import LedgerService
from ledger.transitions import TransitionController

FIXED_TODAY = date(2024, 1, 28)


@pytest.fixture
def today():
    """Stable 'today' for deterministic date logic."""
    return FIXED_TODAY


@pytest.fixture
def temp_db():
    """Yield a fresh DatabaseManager bound to a temp SQLite database."""
    temp_dir = tempfile.mkdtemp(prefix="ledger-tests-")
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(database_url=f"sqlite:///{db_path}")
    manager.create_tables()

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def controller(temp_db, today):
    """TransitionController with a pinned clock."""
    return TransitionController(temp_db, today=lambda: today)


@pytest.fixture
def service(temp_db, today):
    """LedgerService with a pinned clock and small pages."""
    return LedgerService(temp_db, today=lambda: today, page_size=10)


@pytest.fixture
def worker(controller):
    """A saved worker with piece rate 8."""
    return controller.save_worker({"name": "王阿姨", "wechat_nickname": "wang", "unit_price": 8})


def order_payload(worker_id, **overrides):
    """Helper: minimal valid order payload."""
    payload = {
        "worker_id": worker_id,
        "quantity": 100,
        "unit_price": 8.5,
        "item_type": "complete",
    }
    payload.update(overrides)
    return payload
