import argparse
import sys
from auth import hash_password, new_api_token
import config
from databases import open_session
from models import Commander


# === FUNKTION: Commander-Login erstellen oder aktualisieren ===
def setup_commander(db_uri, name, plain_password, rotate_token=False):
    session = open_session(db_uri)
    try:
        commander = session.query(Commander).filter_by(name=name).first()
        if commander:
            # Commander existiert -> Passwort aktualisieren
            commander.password_hash = hash_password(plain_password)
            if rotate_token or not commander.api_token:
                commander.api_token = new_api_token()
            print(f"✅ Passwort für Commander '{name}' wurde erfolgreich aktualisiert.")
        else:
            # Commander existiert nicht -> Neu anlegen
            commander = Commander(
                name=name,
                password_hash=hash_password(plain_password),
                api_token=new_api_token(),
                active=True
            )
            session.add(commander)
            print(f"✅ Commander '{name}' wurde erstellt und Passwort gesetzt.")
        session.commit()
        return commander.api_token
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Commander-Login für einen Tenant anlegen")
    parser.add_argument("name")
    parser.add_argument("password")
    parser.add_argument("--tenant", help="Tenant-Name aus tenant.json (Default: erster Tenant)")
    parser.add_argument("--rotate-token", action="store_true")
    args = parser.parse_args(argv)

    tenant = next((t for t in config.TENANTS if args.tenant in (None, t.get("name"))), None)
    if not tenant or not tenant.get("db_uri"):
        print(f"❌ Tenant nicht gefunden: {args.tenant or '(erster)'}")
        return 1

    token = setup_commander(tenant["db_uri"], args.name, args.password, args.rotate_token)
    print(f"API-Token: {token}")
    return 0


# === Hauptfunktion aufrufen ===
if __name__ == "__main__":
    sys.exit(main())
