from __future__ import annotations

import os
import shutil
import tempfile

# DB e storage temporanei: vanno impostati prima di importare circolo_sub
_TMP = tempfile.mkdtemp(prefix="circolo_sub_test_")
os.environ["CIRCOLO_DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.sqlite')}"
os.environ["CIRCOLO_STORAGE_DIR"] = os.path.join(_TMP, "storage")
os.environ["JWT_SECRET"] = "test-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from circolo_sub.api_main import app  # noqa: E402
from circolo_sub.auth_service import crea_utente, lista_ruoli  # noqa: E402
from circolo_sub.config import STORAGE_DIR  # noqa: E402
from circolo_sub.db import Base, engine, init_db  # noqa: E402
from circolo_sub.seed import seed_base  # noqa: E402


@pytest.fixture(autouse=True)
def db():
    init_db()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    seed_base()
    shutil.rmtree(STORAGE_DIR, ignore_errors=True)
    yield


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def role_id(nome: str) -> int:
    return next(r["id"] for r in lista_ruoli() if r["name"] == nome)


@pytest.fixture
def login(client):
    """Crea un utente (ruolo opzionale) e restituisce gli header Authorization."""

    def _login(ruolo: str | None, email: str | None = None, password: str = "password1") -> dict:
        email = email or f"{(ruolo or 'senzaruolo').lower()}@circolo.test"
        crea_utente(email, password, role_id(ruolo) if ruolo else None)
        r = client.post("/api/auth/login", data={"username": email, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    return _login
