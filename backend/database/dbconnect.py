import os
from contextlib import contextmanager

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Load environment variables
# Try backend/.env first, then fall back to project root/.env
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
env_path = os.path.join(backend_dir, '.env')
if os.path.exists(env_path):
    load_dotenv(env_path)
else:
    load_dotenv()

# Metadata store (portals, sources, projects, roles, teams)
sqlite_db_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'database_instance', 'sqlite_app.db')
METADATA_DATABASE_URL = os.getenv("METADATA_DATABASE_URL", f"sqlite:///{sqlite_db_path}")


def create_metadata_engine(url=None):
    """
    Create the SQLAlchemy engine for the metadata store.

    SQLite needs its parent directory to exist and must allow use from
    worker threads.
    """
    url = url or METADATA_DATABASE_URL
    kwargs = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        if url == f"sqlite:///{sqlite_db_path}":
            os.makedirs(os.path.dirname(sqlite_db_path), exist_ok=True)
        kwargs = {"connect_args": {"check_same_thread": False}}
    return create_engine(url, **kwargs)


metadata_engine = create_metadata_engine()
Session = sessionmaker(bind=metadata_engine)


@contextmanager
def session_scope(session_factory=None):
    """
    Transactional scope around a series of operations.
    Commits on success, rolls back on any exception.
    """
    from backend.modules.logger import error

    session = (session_factory or Session)()
    try:
        yield session
        session.commit()
    except Exception as e:
        error(f"Transaction rolled back: {str(e)}")
        session.rollback()
        raise
    finally:
        session.close()


def get_session():
    """FastAPI dependency yielding a transactional session."""
    with session_scope() as session:
        yield session
