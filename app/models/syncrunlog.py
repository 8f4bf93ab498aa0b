"""
Model: SyncRunLog
Execution log for batch refresh runs
"""

from db import db, now_utc


class SyncRunLog(db.Model):
    """One row per batch invocation (stale, popular, recent, import)"""

    __tablename__ = "sync_run_log"

    id = db.Column(db.Integer, primary_key=True)
    batch_type = db.Column(db.String(20), nullable=False, index=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=now_utc)
    completed_at = db.Column(db.DateTime(timezone=True))
    status = db.Column(db.String(20))  # 'running', 'completed', 'failed'
    force = db.Column(db.Boolean, default=False)

    candidates = db.Column(db.Integer, default=0)
    updated = db.Column(db.Integer, default=0)
    skipped = db.Column(db.Integer, default=0)
    failed = db.Column(db.Integer, default=0)

    error_message = db.Column(db.Text)
