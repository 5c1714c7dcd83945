import importlib
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from sweetshop.config import settings

log = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # request threads share pooled connections
    connect_args = {"check_same_thread": False, "timeout": 30}

engine = create_engine(DATABASE_URL, future=True, echo=False, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
Base = declarative_base()

MODEL_MODULES = [
    "sweetshop.models.user",
    "sweetshop.models.sweet",
    "sweetshop.models.ledger_entry",
    "sweetshop.models.order",
]


def import_models():
    for mod in MODEL_MODULES:
        importlib.import_module(mod)


def init_db(reset: bool = False):
    """
    Initialize DB schema.

    Behavior:
      - reset=True drops every table first (the app passes RESET_DB here).
      - Tables are created if missing; existing data is left alone otherwise.
      - If ADMIN_EMAIL and ADMIN_PASSWORD are configured, the admin account is ensured.
    """
    import_models()

    if reset:
        log.warning("Resetting database schema at %s", DATABASE_URL)
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)
    log.info("Database initialized (%s)", DATABASE_URL)

    if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
        from sweetshop.services.auth_service import AuthService

        with SessionLocal() as s:
            AuthService(s).ensure_admin(settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
