import logging
import os
import sys
from typing import Callable, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from my_notes.api.exceptions import DirectoryUnavailable
from my_notes.db.models import Base, DB_NAME

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

APP_DIR_NAME = "MyNotes"
DATA_DIR_ENV = "MY_NOTES_DATA_DIR"
DB_ECHO_ENV = "MY_NOTES_DB_ECHO"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


# PUBLIC_INTERFACE
def default_data_dir() -> str:
    """Return the platform-specific application data directory (no overrides)."""
    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA")
        if not base:
            raise DirectoryUnavailable("LOCALAPPDATA is not set")
        return os.path.join(base, APP_DIR_NAME)
    home = os.path.expanduser("~")
    if home == "~":
        raise DirectoryUnavailable("Unable to resolve the home directory")
    if sys.platform == "darwin":
        return os.path.join(home, "Library", "Application Support", APP_DIR_NAME)
    base = os.environ.get("XDG_DATA_HOME") or os.path.join(home, ".local", "share")
    return os.path.join(base, APP_DIR_NAME)


# PUBLIC_INTERFACE
def get_app_data_dir(provider: Optional[Callable[[], str]] = None) -> str:
    """
    Resolve and create the writable directory that holds the notes database.

    Order: the given provider, then MY_NOTES_DATA_DIR, then the platform default.
    Raises DirectoryUnavailable if no directory can be supplied or created.
    """
    try:
        if provider is not None:
            path = provider()
        else:
            path = os.environ.get(DATA_DIR_ENV) or default_data_dir()
        if not path:
            raise DirectoryUnavailable()
        path = os.path.abspath(os.path.expanduser(path))
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise DirectoryUnavailable(f"Unable to use application data directory: {e}") from e
    return path


# PUBLIC_INTERFACE
def get_db_path(data_dir: str) -> str:
    """Full path of the notes database file inside data_dir."""
    return os.path.join(data_dir, DB_NAME)


# PUBLIC_INTERFACE
def create_notes_engine(db_path: str) -> Engine:
    """
    Engine over a single SQLite connection for db_path.

    Foreign keys are not enforced (SQLite default), so user deletion
    never cascades into or blocks on notes.
    """
    return create_engine(
        f"sqlite:///{db_path}",
        echo=_env_flag(DB_ECHO_ENV),
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


# PUBLIC_INTERFACE
def create_tables(engine: Engine) -> None:
    """Create the user and note tables if they do not exist yet."""
    Base.metadata.create_all(engine, checkfirst=True)


# PUBLIC_INTERFACE
def create_session(engine: Engine) -> Session:
    """Session bound to engine; the caller owns it and must close it."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return SessionLocal()
