import os
import json
import logging
from dotenv import load_dotenv

# Lade Umgebungsvariablen aus .env
load_dotenv()

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Default API version
API_VERSION = os.getenv("API_VERSION_PROD", "1.0.0")
SERVER_NAME = os.getenv("SERVER_NAME_PROD", "Journal Ledger Server")
SERVER_DESCRIPTION = os.getenv("SERVER_DESCRIPTION_PROD", "Commander journal ingestion and reconciliation")
SERVER_URL = os.getenv("SERVER_URL_PROD")
SERVER_PORT = int(os.getenv("SERVER_PORT", "5000"))

LOG_DIR = os.getenv("LOG_DIR", os.path.join(BASE_DIR, "logs"))
TENANT_CONFIG_PATH = os.getenv("TENANT_CONFIG_PATH", os.path.join(BASE_DIR, "tenant.json"))


def load_tenants(path=TENANT_CONFIG_PATH):
    """
    Lädt die Tenant-Konfiguration. Ein einzelnes Objekt wird als Liste mit einem Tenant behandelt.
    Ohne Datei gibt es keine Tenants, jede Anfrage wird dann mit 401 abgewiesen.
    """
    if not os.path.exists(path):
        logger.warning(f"Tenant-Konfiguration nicht gefunden: {path}")
        return []
    with open(path, "r", encoding="utf-8") as f:
        tenant_data = json.load(f)
    # Ensure TENANTS is always a list for consistent iteration
    return [tenant_data] if isinstance(tenant_data, dict) else tenant_data


TENANTS = load_tenants()
