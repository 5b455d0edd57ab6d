from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fileshare.deps import get_file_ops
from fileshare.main import app
from fileshare.services.file_locks import FileLockRegistry
from fileshare.services.file_ops import FileOps


@pytest.fixture
def ops(tmp_path):
    return FileOps(tmp_path / 'storage', FileLockRegistry())


@pytest.fixture
def client(ops):
    app.dependency_overrides[get_file_ops] = lambda: ops
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
