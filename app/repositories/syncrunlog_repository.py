"""
Repository for SyncRunLog database operations
"""

from sqlalchemy.exc import SQLAlchemyError
from db import db
from models.syncrunlog import SyncRunLog
from utils import now_utc


class SyncRunLogRepository:
    """Repository for SyncRunLog database operations"""

    @staticmethod
    def start(batch_type, force=False):
        try:
            item = SyncRunLog(batch_type=batch_type, status="running", force=force, started_at=now_utc())
            db.session.add(item)
            db.session.commit()
            return item
        except SQLAlchemyError as e:
            db.session.rollback()
            raise e

    @staticmethod
    def finish(item, result=None, error=None):
        """Close a run with its counters, or mark it failed with ``error``"""
        item.completed_at = now_utc()
        if result is not None:
            item.candidates = result.candidates
            item.updated = result.updated
            item.skipped = result.skipped
            item.failed = result.failed
        if error:
            item.status = "failed"
            item.error_message = str(error)
        else:
            item.status = "completed"
        db.session.commit()
        return item
