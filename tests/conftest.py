import os
import tempfile
from pathlib import Path

# Settings are read at import time; point every path at a scratch directory
# before the package is imported anywhere.
_SCRATCH = Path(tempfile.mkdtemp(prefix="kokudo_sticker_tests_"))
os.environ.setdefault("DB_FILE", str(_SCRATCH / "default.db"))
os.environ.setdefault("LOGS_DIR", str(_SCRATCH / "logs"))
os.environ.setdefault("LOG_FILE", str(_SCRATCH / "logs" / "app.log"))

import pytest
import pytest_asyncio

from kokudo_sticker.db import RecordStore
from kokudo_sticker.models import RecordIn
from kokudo_sticker.repository import RecordRepository


def make_record(**overrides) -> RecordIn:
    fields = {"roadNumber": 246, "prefecture": "東京都", "date": "2024-05-01"}
    fields.update(overrides)
    return RecordIn.model_validate(fields)


@pytest_asyncio.fixture
async def store(tmp_path):
    s = RecordStore(tmp_path / "records.db")
    await s.initialize()
    yield s
    await s.close()


@pytest_asyncio.fixture
async def repo(store):
    r = RecordRepository(store, edit_strategy="recreate")
    await r.refresh()
    return r
