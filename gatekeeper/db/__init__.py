from gatekeeper.db.session import async_session_maker, get_db, init_db
from gatekeeper.db.base import Base

__all__ = ["Base", "async_session_maker", "get_db", "init_db"]
