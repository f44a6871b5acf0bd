import os
import logging
import logging.handlers
import threading
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from models import db
import config

# Logger mit RotatingFileHandler, max. 128 MB, 10 Backups
os.makedirs(config.LOG_DIR, exist_ok=True)
logger = logging.getLogger("databases")
log_handler = logging.handlers.RotatingFileHandler(
    os.path.join(config.LOG_DIR, "databases.log"), maxBytes=128 * 1024 * 1024, backupCount=10
)
formatter = logging.Formatter('%(asctime)s %(levelname)s:%(name)s:%(message)s')
log_handler.setFormatter(formatter)
logger.addHandler(log_handler)
logger.setLevel(logging.INFO)
logger.propagate = False  # verhindert Weitergabe an Root-Logger

# Ein Engine/Sessionmaker pro Tenant-URI, prozessweit wiederverwendet
_engines = {}
_session_factories = {}
_engines_lock = threading.Lock()


def _ensure_sqlite_dir(db_uri):
    url = make_url(db_uri)
    if url.drivername == "sqlite" and url.database not in (None, "", ":memory:"):
        dir_name = os.path.dirname(os.path.abspath(url.database))
        if dir_name and not os.path.exists(dir_name):
            os.makedirs(dir_name, exist_ok=True)
        return os.path.abspath(url.database)
    return None


def _connect_args(db_uri):
    return {"check_same_thread": False} if make_url(db_uri).drivername == "sqlite" else {}


def get_engine(db_uri):
    """
    Liefert die Engine für eine Tenant-URI. Beim ersten Zugriff werden SQLite-Verzeichnis
    und Tabellenstruktur angelegt.
    """
    engine = _engines.get(db_uri)
    if engine is not None:
        return engine
    with _engines_lock:
        engine = _engines.get(db_uri)
        if engine is None:
            _ensure_sqlite_dir(db_uri)
            engine = create_engine(db_uri, connect_args=_connect_args(db_uri))
            with engine.begin() as conn:
                db.Model.metadata.create_all(bind=conn)
            _engines[db_uri] = engine
            _session_factories[db_uri] = sessionmaker(bind=engine)
            logger.info(f"Engine für Tenant-DB erstellt: {db_uri}")
    return engine


def open_session(db_uri):
    get_engine(db_uri)
    return _session_factories[db_uri]()


def dispose_engines():
    with _engines_lock:
        for engine in _engines.values():
            engine.dispose()
        _engines.clear()
        _session_factories.clear()


# Initialisierung der Tenant-Datenbanken
def initialize_all_tenant_databases(tenants=None):
    """
    Prüft beim Start für alle Tenants, ob die SQLite-DB-Datei existiert.
    Falls nicht, wird sie samt Tabellenstruktur angelegt.
    """
    for tenant in tenants if tenants is not None else config.TENANTS:
        db_uri = tenant.get("db_uri")
        if not db_uri:
            continue
        sqlite_path = _ensure_sqlite_dir(db_uri)
        existed = sqlite_path is not None and os.path.exists(sqlite_path)
        get_engine(db_uri)
        if sqlite_path and not existed:
            logger.info(f"Tenant-DB initialisiert: {sqlite_path}")


# Aktualisierung der Tenant-Datenbanken
def update_all_tenant_databases(tenants=None):
    """
    Ergänzt fehlende Spalten in bestehenden Tabellen gemäß models.py (nur für SQLite).
    Neue Tabellen legt create_all bereits in get_engine an.
    """
    for tenant in tenants if tenants is not None else config.TENANTS:
        db_uri = tenant.get("db_uri")
        if not db_uri:
            continue
        engine = get_engine(db_uri)
        if engine.dialect.name != "sqlite":
            continue
        with engine.begin() as conn:
            insp = inspect(conn)
            for table in db.Model.metadata.sorted_tables:
                existing = {col["name"] for col in insp.get_columns(table.name)}
                for column in table.columns:
                    if column.name in existing:
                        continue
                    alter_sql = f'ALTER TABLE {table.name} ADD COLUMN {column.name} {column.type.compile(engine.dialect)}'
                    try:
                        conn.execute(text(alter_sql))
                        logger.info(f"Spalte '{column.name}' zu Tabelle '{table.name}' ergänzt für Tenant: {db_uri}")
                    except Exception as e:
                        logger.warning(f"Fehler beim Ergänzen von Spalte '{column.name}' in '{table.name}': {e}")
        logger.info(f"Tenant-DB aktualisiert: {db_uri}")
