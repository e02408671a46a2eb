from .change_feed import ChangeFeed, Subscription
from .sqlite_repo import SqliteRepository

__all__ = ["ChangeFeed", "Subscription", "SqliteRepository"]
