"""Pytest fixtures: one SQLite tenant database per test under tmp_path."""
import pytest

import config
from app import app
from auth import hash_password
from databases import open_session, dispose_engines
from gateway import PersistenceGateway
from models import Commander

API_KEY = "test-key"
API_VERSION = "1.0.0"
TOKEN = "token-maverick"


@pytest.fixture(scope="function")
def tenant(tmp_path, monkeypatch):
    """Single tenant pointing at a fresh SQLite file."""
    tenant = {
        "name": "Test Tenant",
        "api_key": API_KEY,
        "api_version": API_VERSION,
        "db_uri": f"sqlite:///{tmp_path / 'tenant.db'}",
    }
    monkeypatch.setattr(config, "TENANTS", [tenant])
    yield tenant
    dispose_engines()


@pytest.fixture(scope="function")
def db_session(tenant):
    session = open_session(tenant["db_uri"])
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def gateway(db_session):
    return PersistenceGateway(db_session)


@pytest.fixture(scope="function")
def commander(db_session):
    commander = Commander(name="Maverick", password_hash=hash_password("secret"), api_token=TOKEN, active=True)
    db_session.add(commander)
    db_session.commit()
    return commander


@pytest.fixture(scope="function")
def client(tenant):
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


@pytest.fixture(scope="function")
def headers(commander):
    return {"apikey": API_KEY, "apiversion": API_VERSION, "Authorization": f"Bearer {TOKEN}"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def rows(session, model, **filters):
    """Fresh rows of a table; upserts bypass the identity map, so expire first."""
    session.expire_all()
    return session.query(model).filter_by(**filters).order_by(model.id).all()


def fsd_jump(system="Deciat", factions=None, **extra):
    entry = {
        "event": "FSDJump",
        "timestamp": "3310-05-01T12:00:00Z",
        "StarSystem": system,
        "StarClass": "K",
        "SystemFaction": {"Name": "Eurybia Blue Mafia"},
        "Factions": factions if factions is not None else [
            {"Name": "Eurybia Blue Mafia", "Allegiance": "Independent", "Influence": 42, "FactionState": "Boom"},
            {"Name": "Deciat Corp.", "Allegiance": "Federation", "Influence": 18.5, "FactionState": "None"},
        ],
    }
    entry.update(extra)
    return entry
