"""
Journal-Verarbeitung: Audit, Klassifizierung und Abgleich der abgeleiteten Tabellen.

Ablauf pro Einreichung:
    record_journal_event  -> eigener Commit, das Audit bleibt immer erhalten
    EventKind.classify    -> genau ein Reconciler (UNKNOWN = no-op)
    Reconciler            -> Resolver + Gateway, alles in einer Transaktion
"""
from collections import namedtuple
from datetime import datetime, timezone
import enum
import logging

from models import (
    JournalEvent, CommanderProfile, FactionInfluenceSnapshot, TravelLogEntry, MissionContribution,
    PowerplayLogEntry, TradeActivity, CombatLogEntry, ColonizationSupportEntry, ColonizationDepot,
    DepotCommodityRequirement
)
import resolvers as r

logger = logging.getLogger(__name__)

JournalSubmission = namedtuple(
    "JournalSubmission",
    ["audit_id", "commander_id", "cmdr", "system", "station", "kind", "payload", "received_at", "event_time"]
)

RANK_FIELDS = {
    "rank_combat": "Combat",
    "rank_trade": "Trade",
    "rank_explore": "Explore",
    "rank_cqc": "CQC",
}


class EventKind(enum.Enum):
    RANK = "Rank"
    LOAD_GAME = "LoadGame"
    FSD_JUMP = "FSDJump"
    LOCATION = "Location"
    DOCKED = "Docked"
    MISSION_COMPLETED = "MissionCompleted"
    POWERPLAY = "Powerplay"
    POWERPLAY_COLLECT = "PowerplayCollect"
    MARKET_SELL = "MarketSell"
    MARKET_BUY = "MarketBuy"
    BOUNTY = "Bounty"
    COLONISATION_CONTRIBUTION = "ColonisationContribution"
    COLONISATION_CONSTRUCTION_DEPOT = "ColonisationConstructionDepot"
    UNKNOWN = None

    @classmethod
    def classify(cls, kind):
        if not isinstance(kind, str):
            return cls.UNKNOWN
        try:
            return cls(kind)
        except ValueError:
            return cls.UNKNOWN


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


##################################################################
# Intake
##################################################################

def record_journal_event(gateway, commander_id, cmdr, system, station, payload, received_at=None):
    """
    Appends the audit row for one submission and commits it on its own.
    Nothing is validated here, missing context is stored as null.
    """
    received_at = received_at or _utcnow()
    kind = r.resolve_event_kind(payload).value
    resolved_system = r.resolve_system(payload, system).value
    resolved_station = r.resolve_station(payload, station).value

    with gateway.transaction():
        audit = gateway.append(JournalEvent, {
            "commander_id": commander_id,
            "cmdr": r.text_or_none(cmdr),
            "system": r.text_or_none(system),
            "station": r.text_or_none(station),
            "kind": kind if isinstance(kind, str) else None,
            "raw_json": payload,
            "received_at": received_at
        })
        audit_id = audit.id

    return JournalSubmission(
        audit_id=audit_id,
        commander_id=commander_id,
        cmdr=r.text_or_none(cmdr),
        system=resolved_system,
        station=resolved_station,
        kind=kind,
        payload=payload if isinstance(payload, dict) else {},
        received_at=received_at,
        event_time=r.resolve_event_time(payload, received_at).value
    )


##################################################################
# Reconciler
##################################################################

def reconcile_nothing(gateway, submission):
    logger.debug(f"No reconciler for kind {submission.kind!r} (audit {submission.audit_id})")


def reconcile_rank(gateway, submission):
    payload = submission.payload
    record = {column: r.resolve_optional_number(payload, field).value for column, field in RANK_FIELDS.items()}
    record["updated_at"] = submission.received_at
    gateway.upsert(CommanderProfile, {"commander_id": submission.commander_id}, record)


def reconcile_load_game(gateway, submission):
    payload = submission.payload
    ranks = payload.get("Rank")
    if not isinstance(ranks, dict):
        ranks = {}
    record = {column: r.resolve_optional_number(ranks, field).value for column, field in RANK_FIELDS.items()}
    record["credits"] = r.resolve_optional_number(payload, "Credits").value
    record["updated_at"] = submission.received_at
    gateway.upsert(CommanderProfile, {"commander_id": submission.commander_id}, record)


def _append_travel(gateway, submission, star_class=None, station=None):
    gateway.append(TravelLogEntry, {
        "commander_id": submission.commander_id,
        "kind": submission.kind,
        "system": submission.system,
        "star_class": star_class,
        "station": station,
        "timestamp": submission.event_time
    })


def reconcile_fsd_jump(gateway, submission):
    payload = submission.payload
    factions = r.as_list(payload.get("Factions"))

    if submission.system is None:
        logger.warning(f"FSDJump without system (audit {submission.audit_id}), faction snapshots skipped")
        factions = None

    if factions is not None:
        controlling = r.resolve_controlling_faction(payload).value
        for faction in factions:
            if not isinstance(faction, dict):
                continue
            name = faction.get("Name")
            if not isinstance(name, str) or not name.strip():
                continue
            gateway.upsert(
                FactionInfluenceSnapshot,
                {"system": submission.system, "faction_name": name},
                {
                    "allegiance": r.first_text(faction, ("Allegiance",)).value,
                    "influence": r.resolve_amount(faction, "Influence").value,
                    "state": r.first_text(faction, ("FactionState",)).value,
                    "is_player_faction": bool(faction.get("SquadronFaction") or faction.get("PlayerFaction")),
                    "is_controlling_faction": r.is_controlling_faction(name, controlling),
                    "updated_at": submission.received_at
                }
            )

    _append_travel(gateway, submission, star_class=r.first_text(payload, ("StarClass",)).value)


def reconcile_location(gateway, submission):
    _append_travel(gateway, submission)


def reconcile_docked(gateway, submission):
    _append_travel(gateway, submission, station=submission.station)


def reconcile_mission_completed(gateway, submission):
    payload = submission.payload
    gateway.append(MissionContribution, {
        "commander_id": submission.commander_id,
        "system": submission.system,
        "faction": r.resolve_faction(payload).value,
        "mission_name": r.resolve_mission_name(payload).value,
        "reward": r.resolve_amount(payload, "Reward").value,
        "timestamp": submission.event_time
    })


def reconcile_powerplay(gateway, submission):
    payload = submission.payload
    gateway.append(PowerplayLogEntry, {
        "commander_id": submission.commander_id,
        "power": r.first_text(payload, ("Power",)).value,
        "action": submission.kind,
        "amount": r.resolve_amount(payload, "Amount").value,
        "timestamp": submission.event_time
    })


def _append_trade(gateway, submission, kind, credits):
    payload = submission.payload
    commodity = r.resolve_commodity(payload).value
    quantity = r.resolve_quantity(payload).value
    if commodity is None or quantity <= 0:
        logger.info(f"{submission.kind} without commodity or quantity (audit {submission.audit_id}), not recorded")
        return
    gateway.append(TradeActivity, {
        "commander_id": submission.commander_id,
        "kind": kind,
        "commodity": commodity,
        "quantity": quantity,
        "credits": credits,
        "market_id": r.resolve_market_id(payload).value,
        "timestamp": submission.event_time
    })


def reconcile_market_sell(gateway, submission):
    _append_trade(gateway, submission, "trade-sell", r.resolve_sell_credits(submission.payload).value)


def reconcile_market_buy(gateway, submission):
    _append_trade(gateway, submission, "trade-buy", r.resolve_buy_credits(submission.payload).value)


def reconcile_bounty(gateway, submission):
    payload = submission.payload
    gateway.append(CombatLogEntry, {
        "commander_id": submission.commander_id,
        "system": submission.system,
        "pilot_name": r.resolve_pilot_name(payload).value,
        "ship": r.resolve_ship(payload).value,
        "victim_faction": r.resolve_victim_faction(payload).value,
        "reward": r.resolve_bounty_reward(payload).value,
        "timestamp": submission.event_time
    })


def reconcile_colonisation_contribution(gateway, submission):
    payload = submission.payload
    contributions = r.as_list(payload.get("Contributions"))
    if contributions is None:
        return
    market_id = r.resolve_market_id(payload).value
    for item in contributions:
        if not isinstance(item, dict):
            continue
        commodity = r.resolve_contribution_commodity(item).value
        if commodity is None:
            continue
        # Beiträge sind Sachleistungen, keine Credits
        gateway.append(ColonizationSupportEntry, {
            "commander_id": submission.commander_id,
            "system": submission.system,
            "station": submission.station,
            "market_id": market_id,
            "kind": "colonisation-contribution",
            "commodity": commodity,
            "quantity": r.resolve_contribution_quantity(item).value,
            "credits": 0,
            "timestamp": submission.event_time
        })


def reconcile_construction_depot(gateway, submission):
    payload = submission.payload
    market_id = r.resolve_market_id(payload).value
    if market_id is None:
        logger.warning(f"ColonisationConstructionDepot without MarketID (audit {submission.audit_id}), skipped")
        return

    gateway.upsert(ColonizationDepot, {"market_id": market_id}, {
        "system": submission.system,
        "station": submission.station,
        "progress": r.resolve_progress(payload).value,
        "raw_json": payload,
        "updated_at": submission.received_at
    })

    resources = r.as_list(payload.get("ResourcesRequired"))
    if resources is None:
        return
    for resource in resources:
        if not isinstance(resource, dict):
            continue
        commodity = r.resolve_resource_name(resource).value
        if commodity is None:
            continue
        gateway.upsert(DepotCommodityRequirement, {"market_id": market_id, "commodity": commodity}, {
            "required_amount": r.resolve_amount(resource, "RequiredAmount").value,
            "provided_amount": r.resolve_amount(resource, "ProvidedAmount").value,
            "payment": r.resolve_amount(resource, "Payment").value,
            "updated_at": submission.received_at
        })


RECONCILERS = {
    EventKind.RANK: reconcile_rank,
    EventKind.LOAD_GAME: reconcile_load_game,
    EventKind.FSD_JUMP: reconcile_fsd_jump,
    EventKind.LOCATION: reconcile_location,
    EventKind.DOCKED: reconcile_docked,
    EventKind.MISSION_COMPLETED: reconcile_mission_completed,
    EventKind.POWERPLAY: reconcile_powerplay,
    EventKind.POWERPLAY_COLLECT: reconcile_powerplay,
    EventKind.MARKET_SELL: reconcile_market_sell,
    EventKind.MARKET_BUY: reconcile_market_buy,
    EventKind.BOUNTY: reconcile_bounty,
    EventKind.COLONISATION_CONTRIBUTION: reconcile_colonisation_contribution,
    EventKind.COLONISATION_CONSTRUCTION_DEPOT: reconcile_construction_depot,
    EventKind.UNKNOWN: reconcile_nothing,
}


##################################################################
# Einreichung
##################################################################

def submit_journal_event(gateway, commander_id, cmdr, system, station, payload, received_at=None):
    """
    Records the audit row, then applies the reconciler of the event kind in one transaction.
    Raises StoreError when the store fails; the audit row is kept in that case.
    """
    submission = record_journal_event(gateway, commander_id, cmdr, system, station, payload, received_at)
    kind = EventKind.classify(submission.kind)
    reconcile = RECONCILERS[kind]

    with gateway.transaction():
        reconcile(gateway, submission)

    return submission
