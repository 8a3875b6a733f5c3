from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from growth_console.storage import RecordStore  # noqa: E402


@pytest.fixture()
def now() -> datetime:
    return datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "growth.sqlite3"


@pytest_asyncio.fixture()
async def store(db_path: Path) -> AsyncIterator[RecordStore]:
    async with RecordStore(db_path) as opened:
        yield opened


@pytest_asyncio.fixture()
async def broken_store(tmp_path: Path) -> AsyncIterator[RecordStore]:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    async with RecordStore(blocker / "growth.sqlite3") as degraded:
        yield degraded
