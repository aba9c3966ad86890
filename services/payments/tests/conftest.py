import os
import sys
import tempfile
from pathlib import Path

import pytest

# The service reads its database URL at import time
_DB_DIR = tempfile.mkdtemp(prefix="payments-tests-")
os.environ["PAYMENTS_DATABASE_URL"] = f"sqlite:///{_DB_DIR}/payments.sqlite3"
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


@pytest.fixture
def api():
    from fastapi.testclient import TestClient

    import main

    with TestClient(main.app) as client:
        yield client
