from collections import namedtuple
from dateutil.parser import isoparse

# value: resolved value, source: payload key (or derivation) it came from, None for the default
Resolved = namedtuple("Resolved", ["value", "source"])

UNKNOWN_PILOT = "Unknown"
UNKNOWN_SHIP = "Unknown Ship"
UNKNOWN_FACTION = "Unknown Faction"


def first_present(payload, keys, default=None):
    """
    Walks the keys left to right and returns the first value that is present and not None.
    Falls back to the default when no key yields a value.
    """
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if value is not None:
                return Resolved(value, key)
    return Resolved(default, None)


def first_text(payload, keys, default=None):
    """Like first_present, but only string values count. Other shapes fall through to the next key."""
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, str):
                return Resolved(value, key)
    return Resolved(default, None)


def text_or_none(value):
    return value if isinstance(value, str) else None


def _number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value) if "." in value else int(value)
        except ValueError:
            return None
    return None


def _numeric(payload, keys, default=0):
    resolved = first_present(payload, keys)
    number = _number(resolved.value)
    if number is None:
        return Resolved(default, None)
    return Resolved(number, resolved.source)


# Kontext der Einreichung

def resolve_event_kind(payload):
    return first_present(payload, ("event", "kind"))


def resolve_system(payload, envelope_system=None):
    if isinstance(envelope_system, str):
        return Resolved(envelope_system, "envelope")
    return first_text(payload, ("StarSystem", "system"))


def resolve_station(payload, envelope_station=None):
    if isinstance(envelope_station, str):
        return Resolved(envelope_station, "envelope")
    return first_text(payload, ("StationName", "station"))


def resolve_market_id(payload):
    return _numeric(payload, ("MarketID", "MarketId"), default=None)


def resolve_event_time(payload, received_at):
    """Uses the journal timestamp of the entry, the receipt time when it is absent or unparsable."""
    raw = first_present(payload, ("timestamp",))
    if isinstance(raw.value, str):
        try:
            parsed = isoparse(raw.value)
            if parsed.tzinfo is not None:
                parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
        except (ValueError, OverflowError):
            # unlesbar oder ausserhalb des datetime-Bereichs nach UTC-Umrechnung
            return Resolved(received_at, None)
        return Resolved(parsed, raw.source)
    return Resolved(received_at, None)


# Handel

def resolve_commodity(payload):
    return first_text(payload, ("Type", "Commodity", "Fuel"))


def resolve_quantity(payload):
    return _numeric(payload, ("Count", "Quantity"))


def resolve_sell_credits(payload):
    total = _numeric(payload, ("TotalSale",), default=None)
    if total.value is not None:
        return total
    price = _number(payload.get("SellPrice")) if isinstance(payload, dict) else None
    if price is not None:
        return Resolved(price * resolve_quantity(payload).value, "SellPrice*quantity")
    return Resolved(0, None)


def resolve_buy_credits(payload):
    price = _number(payload.get("BuyPrice")) if isinstance(payload, dict) else None
    if price is not None:
        return Resolved(price * resolve_quantity(payload).value, "BuyPrice*quantity")
    return Resolved(0, None)


def resolve_amount(payload, field):
    """Reward, Amount, Payment, RequiredAmount, ProvidedAmount: the explicit field or 0."""
    return _numeric(payload, (field,))


def resolve_optional_number(payload, field):
    """Ranks and Credits: the number, None when absent or not numeric."""
    return _numeric(payload, (field,), default=None)


# Missionen und Kampf

def resolve_faction(payload):
    return first_text(payload, ("Faction", "AwardingFaction"))


def resolve_mission_name(payload):
    return first_text(payload, ("LocalisedName", "Name"))


def resolve_bounty_reward(payload):
    return _numeric(payload, ("TotalReward", "Reward"))


def resolve_pilot_name(payload):
    return first_text(payload, ("PilotName_Localised", "PilotName"), default=UNKNOWN_PILOT)


def resolve_ship(payload):
    return first_text(payload, ("Target_Localised", "Target"), default=UNKNOWN_SHIP)


def resolve_victim_faction(payload):
    return first_text(payload, ("VictimFaction_Localised", "VictimFaction"), default=UNKNOWN_FACTION)


# Fraktionen

def resolve_controlling_faction(payload):
    """
    SystemFaction arrives either as {"Name": ...} (current journal) or as a plain string (older clients).
    """
    raw = first_present(payload, ("SystemFaction", "SystemFactionName"))
    if isinstance(raw.value, dict):
        name = raw.value.get("Name")
        return Resolved(name, f"{raw.source}.Name" if name is not None else None)
    if isinstance(raw.value, str):
        return raw
    return Resolved(None, None)


def _normalize_name(name):
    return name.strip().casefold()


def is_controlling_faction(faction_name, controlling_name):
    if not isinstance(faction_name, str) or not isinstance(controlling_name, str):
        return False
    return _normalize_name(faction_name) == _normalize_name(controlling_name)


# Kolonisierung

def resolve_resource_name(payload):
    return first_text(payload, ("Name", "Name_Localised"))


def resolve_contribution_commodity(payload):
    return first_text(payload, ("Name", "Name_Localised", "Commodity", "Type"))


def resolve_contribution_quantity(payload):
    return _numeric(payload, ("Amount", "Count", "Quantity"))


def resolve_progress(payload):
    return _numeric(payload, ("ConstructionProgress",), default=0.0)


def as_list(value):
    """Returns the value if it is a list, otherwise None so that the caller skips the sub-step."""
    return value if isinstance(value, list) else None
