# rocketcart/database.py
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from rocketcart.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Snapshot database
#
# - SQLite (the default) needs check_same_thread=False because
#   storage calls run in the FastAPI thread pool.
# - pool_pre_ping=True: validate connections before using them
# ---------------------------------------------------------


def build_engine(db_url: str) -> Engine:
    connect_args = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    return create_engine(
        db_url,
        echo=False,        # set to True if you want to debug SQL queries
        pool_pre_ping=True,
        connect_args=connect_args,
    )


engine = build_engine(settings.DATABASE_URL)


def create_db_and_tables(bind: Engine | None = None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    # Import models so SQLModel metadata is populated before create_all()
    from rocketcart.models import cart as _cart_models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
