from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Models register themselves on import; toeic_api.db.models imports them all
# All models must import Base from this module
