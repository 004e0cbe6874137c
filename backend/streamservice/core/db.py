from sqlmodel import SQLModel, Session, create_engine
from streamservice.core.config import settings


def make_engine(url: str):
    """create an engine; sqlite connections are shared across worker threads"""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


engine = make_engine(settings.DATABASE_URL)


def init_db(bind=None):
    # import models so their tables are registered on the metadata
    from streamservice import models  # noqa: F401
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session
