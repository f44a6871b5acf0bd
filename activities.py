from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import SQLAlchemyError
import logging
from auth import require_api_key, require_commander
from models import ActivityLogEntry

logger = logging.getLogger(__name__)

activities_bp = Blueprint("activities", __name__)

REQUIRED_FIELDS = ("type", "details", "timestamp")


# API-Endpunkt zum Empfangen und Speichern von Aktivitäten
@activities_bp.route("/api/activity", methods=["POST"])
@require_api_key
@require_commander
def post_activity():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict) or not all(data.get(field) for field in REQUIRED_FIELDS):
        return jsonify({"error": "Missing activity fields"}), 400

    session = g.db_session
    try:
        entry = ActivityLogEntry(
            commander_id=g.commander.id,
            type=str(data["type"]),
            details=str(data["details"]),
            timestamp=str(data["timestamp"])
        )
        session.add(entry)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Activity processing error: {str(e)}")
        return jsonify({"error": str(e)}), 500

    logger.info(f"Activity received: {entry.to_dict()}")
    return jsonify({"message": "Activity logged", "entry": entry.to_dict()}), 201


# Aktivitäten des Commanders abrufen
@activities_bp.route("/api/activity", methods=["GET"])
@require_api_key
@require_commander
def get_activities():
    query = g.db_session.query(ActivityLogEntry).filter_by(commander_id=g.commander.id)
    activity_type = request.args.get("type")
    if activity_type:
        query = query.filter(ActivityLogEntry.type == activity_type)
    return jsonify([entry.to_dict() for entry in query.order_by(ActivityLogEntry.id).all()]), 200
