import re
import secrets
import logging
from functools import wraps
import bcrypt
from flask import request, jsonify, g
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
import config
from databases import open_session
from models import Commander

logger = logging.getLogger(__name__)

API_VERSION_PATTERN = re.compile(r'^\d+\.\d+\.\d+$')


def get_tenant_by_apikey(apikey):
    for tenant in config.TENANTS:
        if apikey and tenant.get("api_key") == apikey:
            return tenant
    return None


def set_tenant_db_session(tenant):
    """
    Öffnet eine Session auf der Tenant-Datenbank für den aktuellen Request.
    Fehler werden geloggt und im Request-Kontext hinterlegt.
    """
    if not tenant or not tenant.get("db_uri"):
        error_msg = "Tenant oder Datenbank-URI nicht gefunden. Kein Fallback erlaubt."
        logger.error(error_msg)
        g.tenant_db_error = error_msg
        return

    db_uri = tenant["db_uri"]
    try:
        session = open_session(db_uri)
        g.db_session = session
        # Verbindung testen
        session.execute(text("SELECT 1"))
    except OperationalError as e:
        logger.error(f"Tenant-Datenbank nicht gefunden oder nicht erreichbar: {db_uri} ({str(e)})")
        g.tenant_db_error = str(e)
    except Exception as e:
        logger.exception(f"Fehler beim Setzen der Tenant-DB-Konfiguration für {db_uri}: {e}")
        g.tenant_db_error = str(e)


def close_tenant_db_session(exception=None):
    session = g.pop("db_session", None)
    if session is not None:
        session.close()


# Decorator to require API key and set tenant context
def require_api_key(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        apikey = request.headers.get("apikey")
        tenant = get_tenant_by_apikey(apikey)
        if not tenant:
            logger.warning(f"Invalid API-Key received: {apikey}")
            return jsonify({"error": "Unauthorized: Invalid API key"}), 401

        g.tenant = tenant
        set_tenant_db_session(tenant)

        if hasattr(g, "tenant_db_error"):
            logger.error(f"Tenant-Datenbankfehler: {g.tenant_db_error}")
            return jsonify({"error": f"Tenant-Datenbank nicht gefunden oder nicht erreichbar: {g.tenant_db_error}"}), 500

        api_version = request.headers.get("apiversion")
        if not api_version:
            return jsonify({"error": "Missing required header: apiversion"}), 400

        if not API_VERSION_PATTERN.match(api_version):
            return jsonify({"error": "Invalid apiversion format. Expected x.y.z notation"}), 400

        if api_version != tenant.get("api_version", config.API_VERSION):
            logger.warning(f"Client using different API version: {api_version} (tenant: {tenant.get('api_version', config.API_VERSION)})")

        return f(*args, **kwargs)
    return decorated


# Decorator to resolve the commander from the bearer token, requires require_api_key first
def require_commander(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return jsonify({"error": "Unauthorized: Missing bearer token"}), 401

        commander = g.db_session.query(Commander).filter_by(api_token=token.strip(), active=True).first()
        if not commander:
            logger.warning(f"Invalid bearer token for tenant {g.tenant.get('name')}")
            return jsonify({"error": "Unauthorized: Invalid token"}), 401

        g.commander = commander
        return f(*args, **kwargs)
    return decorated


def hash_password(plain_password):
    return bcrypt.hashpw(plain_password.encode(), bcrypt.gensalt()).decode()


def check_password(plain_password, hashed):
    if not hashed:
        return False
    return bcrypt.checkpw(plain_password.encode(), hashed.encode())


def new_api_token():
    return secrets.token_hex(32)
