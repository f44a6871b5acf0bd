"""Persistence gateway: append, keyed upsert and transaction scope."""
from datetime import datetime

import pytest

from gateway import PersistenceGateway, StoreError
from models import FactionInfluenceSnapshot, TradeActivity, CommanderProfile
from tests.conftest import rows


def _snapshot(influence, state="Boom"):
    return {
        "allegiance": "Independent",
        "influence": influence,
        "state": state,
        "is_player_faction": False,
        "is_controlling_faction": True,
        "updated_at": datetime(2026, 1, 1),
    }


class TestAppend:

    def test_append_returns_flushed_row(self, gateway, db_session):
        with gateway.transaction():
            row = gateway.append(TradeActivity, {"kind": "trade-buy", "commodity": "gold", "quantity": 2})
            assert row.id is not None
        assert len(rows(db_session, TradeActivity)) == 1

    def test_append_store_error(self, gateway, db_session):
        with pytest.raises(StoreError):
            with gateway.transaction():
                # commodity is NOT NULL
                gateway.append(TradeActivity, {"kind": "trade-buy", "commodity": None, "quantity": 2})
        assert rows(db_session, TradeActivity) == []

    def test_driver_overflow_becomes_store_error(self, gateway, db_session):
        with pytest.raises(StoreError, match="trade_activities"):
            with gateway.transaction():
                gateway.append(TradeActivity, {"kind": "trade-sell", "commodity": "gold", "quantity": 10 ** 20})
        assert rows(db_session, TradeActivity) == []

    def test_unbindable_value_becomes_store_error(self, gateway):
        with pytest.raises(StoreError):
            with gateway.transaction():
                gateway.upsert(CommanderProfile, {"commander_id": 1}, {"credits": 10 ** 20})


class TestUpsert:

    def test_upsert_overwrites_in_place(self, gateway, db_session):
        key = {"system": "Deciat", "faction_name": "Eurybia Blue Mafia"}
        with gateway.transaction():
            gateway.upsert(FactionInfluenceSnapshot, key, _snapshot(40.0))
        with gateway.transaction():
            gateway.upsert(FactionInfluenceSnapshot, key, _snapshot(42.0, state="Expansion"))

        snapshots = rows(db_session, FactionInfluenceSnapshot)
        assert len(snapshots) == 1
        assert snapshots[0].influence == 42.0
        assert snapshots[0].state == "Expansion"

    def test_upsert_keeps_columns_outside_record(self, gateway, db_session):
        key = {"commander_id": 1}
        with gateway.transaction():
            gateway.upsert(CommanderProfile, key, {"credits": 1000, "rank_combat": 3})
        with gateway.transaction():
            gateway.upsert(CommanderProfile, key, {"rank_combat": 5})

        profile = rows(db_session, CommanderProfile)[0]
        assert profile.credits == 1000
        assert profile.rank_combat == 5


class TestTransaction:

    def test_failure_rolls_back_all_statements(self, gateway, db_session):
        with pytest.raises(RuntimeError):
            with gateway.transaction():
                gateway.append(TradeActivity, {"kind": "trade-buy", "commodity": "gold", "quantity": 2})
                raise RuntimeError("boom")
        assert rows(db_session, TradeActivity) == []

    def test_unsupported_dialect(self, db_session, monkeypatch):
        gateway = PersistenceGateway(db_session)
        monkeypatch.setattr("gateway.UPSERT_DIALECTS", {})
        with pytest.raises(StoreError, match="not supported"):
            gateway.upsert(CommanderProfile, {"commander_id": 1}, {"credits": 1})
