"""
Worker exception model
Leave, injury, accident or transfer periods during which a worker is excused
"""
from datetime import datetime

from whs_tracker.services.exception_resolver import EXCEPTION_TYPES, ExceptionSnapshot, get_exception_type_label


def create_worker_exception_model(db):
    """Factory function to create WorkerException model with db instance"""

    class WorkerException(db.Model):
        """
        Period during which a worker is not expected to check in

        Closing an exception is a soft delete: is_active becomes False and
        deactivated_at records when, so analytics for earlier dates still
        treat the worker as excused.

        Attributes:
            user_id: Excused worker
            team_id: Worker's team when the exception was created
            exception_type: One of EXCEPTION_TYPES
            reason: Free text
            start_date / end_date: Inclusive dates, end_date open when NULL
            is_active / deactivated_at: Soft-delete state
        """
        __tablename__ = 'worker_exceptions'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
        team_id = db.Column(db.String(36), db.ForeignKey('teams.id'), nullable=True, index=True)
        exception_type = db.Column(db.Enum(*EXCEPTION_TYPES, name='exception_type'), nullable=False)
        reason = db.Column(db.Text)
        start_date = db.Column(db.Date, nullable=False)
        end_date = db.Column(db.Date, nullable=True)
        is_active = db.Column(db.Boolean, nullable=False, default=True)
        deactivated_at = db.Column(db.DateTime, nullable=True)
        created_by = db.Column(db.String(36), nullable=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.CheckConstraint('end_date IS NULL OR end_date >= start_date', name='check_exception_date_range'),
            db.Index('idx_worker_exceptions_user_active', 'user_id', 'is_active'),
        )

        user = db.relationship('User', foreign_keys=[user_id], lazy=True)

        def to_snapshot(self):
            """Read-only record for the analytics engine"""
            return ExceptionSnapshot.create(
                worker_id=self.user_id,
                start_date=self.start_date,
                end_date=self.end_date,
                is_active=self.is_active,
                deactivated_at=self.deactivated_at,
                exception_type=self.exception_type,
                team_id=self.team_id,
                id=self.id,
            )

        def to_dict(self):
            return {
                'id': self.id,
                'user_id': self.user_id,
                'worker_name': self.user.display_name if self.user else None,
                'team_id': self.team_id,
                'exception_type': self.exception_type,
                'exception_type_label': get_exception_type_label(self.exception_type),
                'reason': self.reason,
                'start_date': self.start_date.isoformat() if self.start_date else None,
                'end_date': self.end_date.isoformat() if self.end_date else None,
                'is_active': self.is_active,
                'deactivated_at': self.deactivated_at.isoformat() if self.deactivated_at else None,
                'created_by': self.created_by,
                'created_at': self.created_at.isoformat() if self.created_at else None,
            }

        def __repr__(self):
            return f'<WorkerException {self.id}: {self.user_id} {self.exception_type} from {self.start_date}>'

    return WorkerException
