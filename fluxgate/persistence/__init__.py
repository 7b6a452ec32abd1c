"""Run history persistence."""

from fluxgate.persistence.database import close_db, init_db
from fluxgate.persistence.history import RunStore, record_from_result

__all__ = ["RunStore", "close_db", "init_db", "record_from_result"]
