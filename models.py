from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class Commander(db.Model):
    __tablename__ = "commanders"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=True)
    api_token = db.Column(db.String(64), unique=True, nullable=True)
    active = db.Column(db.Boolean, default=True)


class JournalEvent(db.Model):
    __tablename__ = "journal_events"
    id = db.Column(db.Integer, primary_key=True)
    commander_id = db.Column(db.Integer, nullable=True, index=True)
    cmdr = db.Column(db.String(64), nullable=True)
    system = db.Column(db.String(128), nullable=True)
    station = db.Column(db.String(128), nullable=True)
    kind = db.Column(db.String(64), nullable=True)
    raw_json = db.Column(db.JSON, nullable=True)
    received_at = db.Column(db.DateTime, nullable=False)


class CommanderProfile(db.Model):
    __tablename__ = "commander_profiles"
    id = db.Column(db.Integer, primary_key=True)
    commander_id = db.Column(db.Integer, unique=True, nullable=False)
    credits = db.Column(db.BigInteger)
    rank_combat = db.Column(db.Integer)
    rank_trade = db.Column(db.Integer)
    rank_explore = db.Column(db.Integer)
    rank_cqc = db.Column(db.Integer)
    updated_at = db.Column(db.DateTime)


class FactionInfluenceSnapshot(db.Model):
    __tablename__ = "faction_influence_snapshots"
    __table_args__ = (db.UniqueConstraint("system", "faction_name", name="uq_faction_snapshot_system_faction"),)
    id = db.Column(db.Integer, primary_key=True)
    system = db.Column(db.String(128), nullable=False)
    faction_name = db.Column(db.String(128), nullable=False)
    allegiance = db.Column(db.String(64))
    # unverändert wie gemeldet, aktuelle Clients liefern Anteile 0-1 statt Prozent
    influence = db.Column(db.Float, comment="as reported, not rescaled; current journals send a 0-1 fraction")
    state = db.Column(db.String(64))
    is_player_faction = db.Column(db.Boolean, default=False)
    is_controlling_faction = db.Column(db.Boolean, default=False)
    updated_at = db.Column(db.DateTime)


class TravelLogEntry(db.Model):
    __tablename__ = "travel_log_entries"
    id = db.Column(db.Integer, primary_key=True)
    commander_id = db.Column(db.Integer, nullable=True, index=True)
    kind = db.Column(db.String(32), nullable=False)
    system = db.Column(db.String(128))
    star_class = db.Column(db.String(16))
    station = db.Column(db.String(128))
    timestamp = db.Column(db.DateTime)


class MissionContribution(db.Model):
    __tablename__ = "mission_contributions"
    id = db.Column(db.Integer, primary_key=True)
    commander_id = db.Column(db.Integer, nullable=True, index=True)
    system = db.Column(db.String(128))
    faction = db.Column(db.String(128))
    mission_name = db.Column(db.String(256))
    reward = db.Column(db.BigInteger, default=0)
    timestamp = db.Column(db.DateTime)


class PowerplayLogEntry(db.Model):
    __tablename__ = "powerplay_log_entries"
    id = db.Column(db.Integer, primary_key=True)
    commander_id = db.Column(db.Integer, nullable=True, index=True)
    power = db.Column(db.String(128))
    action = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.BigInteger, default=0)
    timestamp = db.Column(db.DateTime)


class TradeActivity(db.Model):
    __tablename__ = "trade_activities"
    id = db.Column(db.Integer, primary_key=True)
    commander_id = db.Column(db.Integer, nullable=True, index=True)
    kind = db.Column(db.String(16), nullable=False)
    commodity = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    credits = db.Column(db.BigInteger, default=0)
    market_id = db.Column(db.BigInteger)
    timestamp = db.Column(db.DateTime)


class CombatLogEntry(db.Model):
    __tablename__ = "combat_log_entries"
    id = db.Column(db.Integer, primary_key=True)
    commander_id = db.Column(db.Integer, nullable=True, index=True)
    system = db.Column(db.String(128))
    pilot_name = db.Column(db.String(128))
    ship = db.Column(db.String(64))
    victim_faction = db.Column(db.String(128))
    reward = db.Column(db.BigInteger, default=0)
    timestamp = db.Column(db.DateTime)


class ColonizationSupportEntry(db.Model):
    __tablename__ = "colonization_support_entries"
    id = db.Column(db.Integer, primary_key=True)
    commander_id = db.Column(db.Integer, nullable=True, index=True)
    system = db.Column(db.String(128))
    station = db.Column(db.String(128))
    market_id = db.Column(db.BigInteger)
    kind = db.Column(db.String(64), nullable=False)
    commodity = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.Integer, default=0)
    credits = db.Column(db.BigInteger, default=0)
    timestamp = db.Column(db.DateTime)


class ColonizationDepot(db.Model):
    __tablename__ = "colonization_depots"
    id = db.Column(db.Integer, primary_key=True)
    market_id = db.Column(db.BigInteger, unique=True, nullable=False)
    system = db.Column(db.String(128))
    station = db.Column(db.String(128))
    progress = db.Column(db.Float, default=0.0)
    raw_json = db.Column(db.JSON)
    updated_at = db.Column(db.DateTime)


class DepotCommodityRequirement(db.Model):
    __tablename__ = "depot_commodity_requirements"
    __table_args__ = (db.UniqueConstraint("market_id", "commodity", name="uq_depot_requirement_market_commodity"),)
    id = db.Column(db.Integer, primary_key=True)
    market_id = db.Column(db.BigInteger, nullable=False)
    commodity = db.Column(db.String(128), nullable=False)
    required_amount = db.Column(db.Integer, default=0)
    provided_amount = db.Column(db.Integer, default=0)
    payment = db.Column(db.BigInteger, default=0)
    updated_at = db.Column(db.DateTime)


class ActivityLogEntry(db.Model):
    __tablename__ = "activity_log_entries"
    id = db.Column(db.Integer, primary_key=True)
    commander_id = db.Column(db.Integer, nullable=True, index=True)
    type = db.Column(db.String(64), nullable=False)
    details = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.String(64), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "details": self.details,
            "timestamp": self.timestamp
        }
