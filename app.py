from flask import Flask, request, jsonify, g
import logging
import logging.handlers
import os
import config
from auth import (
    require_api_key, require_commander, get_tenant_by_apikey, set_tenant_db_session, close_tenant_db_session,
    check_password, new_api_token
)
from gateway import PersistenceGateway, StoreError
from journal import submit_journal_event
from resolvers import text_or_none
from models import (
    Commander, CommanderProfile, FactionInfluenceSnapshot, TravelLogEntry, PowerplayLogEntry,
    ColonizationSupportEntry, DepotCommodityRequirement
)
from activities import activities_bp

# Logging setup
os.makedirs(config.LOG_DIR, exist_ok=True)
logfile_path = os.path.join(config.LOG_DIR, "app.log")
logging.basicConfig(
    level=logging.INFO,
    handlers=[
        logging.handlers.RotatingFileHandler(logfile_path, maxBytes=128 * 1024 * 1024, backupCount=10),
        logging.StreamHandler()
    ],
    format='%(asctime)s %(levelname)s:%(name)s:%(message)s'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.register_blueprint(activities_bp)


# Request teardown: Session schließen
@app.teardown_appcontext
def remove_session(exception=None):
    close_tenant_db_session(exception)


##################################################################
# Journal-Endpoint
##################################################################

@app.route("/events", methods=["POST"])
@require_api_key
@require_commander
def post_events():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    # Umschlag {"cmdr", "system", "station", "entry"} oder der Journal-Eintrag direkt
    entry = body["entry"] if "entry" in body else body
    commander = g.commander
    commander_id, cmdr = commander.id, text_or_none(body.get("cmdr")) or commander.name

    gateway = PersistenceGateway(g.db_session)
    try:
        submission = submit_journal_event(
            gateway, commander_id, cmdr, body.get("system"), body.get("station"), entry
        )
    except StoreError as e:
        logger.error(f"Journal processing error: {str(e)}")
        logger.error(f"Journal Request Json: {str(body)}")
        return jsonify({"error": str(e)}), 500

    logger.info(f"Journal event {submission.kind!r} from {cmdr} processed (audit {submission.audit_id})")
    return jsonify({"status": "success", "message": "Journal event processed"}), 200


# Discovery-Endpoint
@app.route("/discovery", methods=["GET"])
def discovery():
    """Discovery endpoint providing server capabilities and information"""
    return jsonify({
        "name": config.SERVER_NAME,
        "description": config.SERVER_DESCRIPTION,
        "url": config.SERVER_URL,
        "endpoints": {
            "events": {
                "path": "/events",
                "minPeriod": "0",
                "maxBatch": "1"
            },
            "activity": {
                "path": "/api/activity",
                "minPeriod": "0",
                "maxBatch": "1"
            }
        },
        "headers": {
            "apikey": {
                "required": True,
                "description": "API key for authentication"
            },
            "apiversion": {
                "required": True,
                "description": "The version of the API in x.y.z notation",
                "current": config.API_VERSION
            },
            "Authorization": {
                "required": True,
                "description": "Bearer token of the commander, issued by /api/login"
            }
        }
    }), 200


# Root-Endpoint
@app.route("/", methods=["GET"])
def root():
    """Root endpoint providing basic server information"""
    return jsonify({
        "message": "Journal Ledger Server is running",
        "version": config.API_VERSION,
        "name": config.SERVER_NAME,
        "endpoints": {
            "discovery": "/discovery",
            "api": "/api/"
        }
    }), 200


##################################################################
# Auth
##################################################################

# Login Endpoint
@app.route("/api/login", methods=["POST"])
def login_api():
    apikey = request.headers.get("apikey")
    tenant = get_tenant_by_apikey(apikey)
    if not tenant:
        logger.warning(f"Invalid API-Key received for login: {apikey}")
        return jsonify({"error": "Unauthorized: Invalid API key"}), 401

    g.tenant = tenant
    set_tenant_db_session(tenant)
    if hasattr(g, "tenant_db_error"):
        logger.error(f"Tenant-Datenbankfehler beim Login: {g.tenant_db_error}")
        return jsonify({"error": f"Tenant-Datenbank nicht gefunden oder nicht erreichbar: {g.tenant_db_error}"}), 500

    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")
    if not username or not password:
        return jsonify({"error": "Missing credentials"}), 400

    session = g.db_session
    commander = session.query(Commander).filter_by(name=username, active=True).first()
    if not commander or not check_password(password, commander.password_hash):
        return jsonify({"error": "Invalid credentials"}), 401

    if not commander.api_token:
        commander.api_token = new_api_token()
        session.commit()

    return jsonify({
        "id": commander.id,
        "username": commander.name,
        "api_token": commander.api_token,
        "tenant_name": tenant.get("name")
    }), 200


##################################################################
# Lesende Endpunkte
##################################################################

# Commander-Profil
@app.route("/api/commander", methods=["GET"])
@require_api_key
@require_commander
def commander_profile():
    session = g.db_session
    commander = g.commander
    profile = session.query(CommanderProfile).filter_by(commander_id=commander.id).first()
    last_travel = (
        session.query(TravelLogEntry)
        .filter_by(commander_id=commander.id)
        .order_by(TravelLogEntry.id.desc())
        .first()
    )
    last_powerplay = (
        session.query(PowerplayLogEntry)
        .filter_by(commander_id=commander.id)
        .order_by(PowerplayLogEntry.id.desc())
        .first()
    )
    return jsonify({
        "name": commander.name,
        "system": last_travel.system if last_travel else None,
        "power": last_powerplay.power if last_powerplay else None,
        "credits": profile.credits if profile else None,
        "ranks": {
            "combat": profile.rank_combat if profile else None,
            "trade": profile.rank_trade if profile else None,
            "explore": profile.rank_explore if profile else None,
            "cqc": profile.rank_cqc if profile else None
        },
        "updated_at": profile.updated_at.isoformat() if profile and profile.updated_at else None
    }), 200


@app.route("/api/travel-log", methods=["GET"])
@require_api_key
@require_commander
def travel_log():
    limit = request.args.get("limit", default=100, type=int)
    entries = (
        g.db_session.query(TravelLogEntry)
        .filter_by(commander_id=g.commander.id)
        .order_by(TravelLogEntry.id.desc())
        .limit(max(1, min(limit, 1000)))
        .all()
    )
    return jsonify([{
        "kind": e.kind,
        "system": e.system,
        "star_class": e.star_class,
        "station": e.station,
        "timestamp": e.timestamp.isoformat() if e.timestamp else None
    } for e in entries]), 200


@app.route("/api/factions/<system_name>", methods=["GET"])
@require_api_key
def system_factions(system_name):
    """Influence is returned exactly as reported, no rescaling. Current journals send a 0-1 fraction."""
    snapshots = (
        g.db_session.query(FactionInfluenceSnapshot)
        .filter_by(system=system_name)
        .order_by(FactionInfluenceSnapshot.influence.desc())
        .all()
    )
    return jsonify([{
        "system": s.system,
        "faction": s.faction_name,
        "allegiance": s.allegiance,
        "influence": s.influence,
        "state": s.state,
        "is_player_faction": bool(s.is_player_faction),
        "is_controlling_faction": bool(s.is_controlling_faction),
        "updated_at": s.updated_at.isoformat() if s.updated_at else None
    } for s in snapshots]), 200


@app.route("/api/colonization/support", methods=["GET"])
@require_api_key
@require_commander
def colonization_support():
    entries = (
        g.db_session.query(ColonizationSupportEntry)
        .filter_by(commander_id=g.commander.id)
        .order_by(ColonizationSupportEntry.id)
        .all()
    )
    return jsonify([{
        "system": e.system,
        "station": e.station,
        "market_id": e.market_id,
        "kind": e.kind,
        "commodity": e.commodity,
        "quantity": e.quantity,
        "credits": e.credits,
        "timestamp": e.timestamp.isoformat() if e.timestamp else None
    } for e in entries]), 200


@app.route("/api/colonization/requirements/open", methods=["GET"])
@require_api_key
def open_depot_requirements():
    query = g.db_session.query(DepotCommodityRequirement).filter(
        DepotCommodityRequirement.provided_amount < DepotCommodityRequirement.required_amount
    )
    market_id = request.args.get("market_id", type=int)
    if market_id is not None:
        query = query.filter(DepotCommodityRequirement.market_id == market_id)
    requirements = query.order_by(DepotCommodityRequirement.market_id, DepotCommodityRequirement.commodity).all()
    return jsonify([{
        "market_id": req.market_id,
        "commodity": req.commodity,
        "required_amount": req.required_amount,
        "provided_amount": req.provided_amount,
        "remaining": req.required_amount - req.provided_amount,
        "payment": req.payment
    } for req in requirements]), 200


#####################################################################
# App-Start
#####################################################################
if __name__ == "__main__":
    from waitress import serve
    from databases import initialize_all_tenant_databases, update_all_tenant_databases

    print("Starting Journal Ledger Server (Waitress)...")
    initialize_all_tenant_databases()
    update_all_tenant_databases()

    serve(app, host="0.0.0.0", port=config.SERVER_PORT, threads=8)
