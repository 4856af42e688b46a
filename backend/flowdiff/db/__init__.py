"""Version history persistence."""

from flowdiff.db.database import close_database, get_db, init_database
from flowdiff.db.version_store import VersionStore, version_store

__all__ = ["init_database", "close_database", "get_db", "VersionStore", "version_store"]
