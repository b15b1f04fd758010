from app.database.base import Base
from app.database.engine import build_engine, engine
from app.database.session import SessionLocal, build_session_factory, get_db


def init_db(bind=None) -> None:
    from app.models import import_all_models

    import_all_models()
    Base.metadata.create_all(bind=bind or engine)


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "engine",
    "get_db",
    "init_db",
]
