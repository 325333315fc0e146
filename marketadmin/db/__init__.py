from marketadmin.db.session import async_session_maker, close_db, get_db, init_db
from marketadmin.db.base import Base

__all__ = ["Base", "async_session_maker", "close_db", "get_db", "init_db"]
