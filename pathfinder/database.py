from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from pathfinder.core import config


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith('sqlite'):
        connect_args['check_same_thread'] = False
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_auth_schema_checked = False


def ensure_auth_schema(bind: Engine | None = None) -> None:
    global _auth_schema_checked

    if _auth_schema_checked:
        return

    with _schema_lock:
        if _auth_schema_checked:
            return

        bind = bind or engine
        inspector = inspect(bind)
        table_names = set(inspector.get_table_names())

        with bind.begin() as connection:
            if 'verification_records' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_verification_expires_at ON verification_records(expires_at)')
                )
            if 'unlock_events' in table_names:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_unlock_events_user_phase ON unlock_events(user_id, phase_id)')
                )

        _auth_schema_checked = True
