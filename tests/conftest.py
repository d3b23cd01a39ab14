import pytest

import db
from config import settings


@pytest.fixture(autouse=True)
def storage(tmp_path, monkeypatch):
    """Every test gets its own sqlite file."""
    monkeypatch.setattr(settings, "rage_storage_dir", str(tmp_path))
    db.init_db()
    return tmp_path
