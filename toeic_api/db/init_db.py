from sqlalchemy.engine import Engine

from toeic_api.db.session import engine as default_engine
from toeic_api.db.base import Base
import toeic_api.db.models  # noqa: F401


def init_db(engine: Engine = None) -> None:
    """Create any missing tables. Local development only; deploys run Alembic."""
    Base.metadata.create_all(bind=engine or default_engine)
