"""
Work schedule model
One-off shifts (scheduled_date) or weekly recurring shifts (day_of_week)
"""
from datetime import datetime

from whs_tracker.services.schedule_expander import ScheduleSnapshot


def create_work_schedule_model(db):
    """Factory function to create WorkSchedule model with db instance"""

    class WorkSchedule(db.Model):
        """
        Work schedule assigned to a worker by their team leader

        Exactly one of scheduled_date and day_of_week is set. Recurring rows
        (day_of_week, Sunday = 0) apply between effective_date and
        expiry_date, both optional and inclusive.

        Deleting a schedule is a soft delete (is_active = False) so past
        completion rates keep counting the days it covered.

        Attributes:
            worker_id: Worker on shift
            team_id: Team the schedule was created for
            scheduled_date: Date of a one-off shift
            day_of_week: Weekday of a recurring shift (0-6)
            effective_date / expiry_date: Optional recurrence bounds
            start_time / end_time: Shift hours ('HH:MM')
            check_in_window_start / check_in_window_end: Optional check-in window
            requires_daily_checkin: Whether a daily check-in is expected
            daily_checkin_start_time / daily_checkin_end_time: Daily check-in hours
            deactivated_by_exception_id: Exception that switched this schedule off
        """
        __tablename__ = 'work_schedules'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        worker_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
        team_id = db.Column(db.String(36), db.ForeignKey('teams.id'), nullable=False, index=True)

        scheduled_date = db.Column(db.Date, nullable=True)
        day_of_week = db.Column(db.Integer, nullable=True)
        effective_date = db.Column(db.Date, nullable=True)
        expiry_date = db.Column(db.Date, nullable=True)

        start_time = db.Column(db.String(5), nullable=False)
        end_time = db.Column(db.String(5), nullable=False)
        check_in_window_start = db.Column(db.String(5))
        check_in_window_end = db.Column(db.String(5))
        requires_daily_checkin = db.Column(db.Boolean, nullable=False, default=False)
        daily_checkin_start_time = db.Column(db.String(5))
        daily_checkin_end_time = db.Column(db.String(5))
        notes = db.Column(db.Text)

        is_active = db.Column(db.Boolean, nullable=False, default=True)
        deactivated_by_exception_id = db.Column(db.Integer, nullable=True)
        created_by = db.Column(db.String(36), nullable=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)

        __table_args__ = (
            db.CheckConstraint(
                '(scheduled_date IS NULL) != (day_of_week IS NULL)',
                name='check_schedule_date_or_weekday'
            ),
            db.CheckConstraint(
                'day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)',
                name='check_schedule_day_of_week'
            ),
            db.Index('idx_work_schedules_team_active', 'team_id', 'is_active'),
            db.Index('idx_work_schedules_worker_date', 'worker_id', 'scheduled_date'),
        )

        worker = db.relationship('User', foreign_keys=[worker_id], lazy=True)

        @property
        def is_recurring(self):
            return self.scheduled_date is None and self.day_of_week is not None

        def to_snapshot(self):
            """Read-only record for the analytics engine"""
            return ScheduleSnapshot.create(
                worker_id=self.worker_id,
                scheduled_date=self.scheduled_date,
                day_of_week=self.day_of_week,
                effective_date=self.effective_date,
                expiry_date=self.expiry_date,
                is_active=self.is_active,
                team_id=self.team_id,
                id=self.id,
                start_time=self.start_time,
                end_time=self.end_time,
            )

        def to_dict(self):
            return {
                'id': self.id,
                'worker_id': self.worker_id,
                'worker_name': self.worker.display_name if self.worker else None,
                'team_id': self.team_id,
                'scheduled_date': self.scheduled_date.isoformat() if self.scheduled_date else None,
                'day_of_week': self.day_of_week,
                'effective_date': self.effective_date.isoformat() if self.effective_date else None,
                'expiry_date': self.expiry_date.isoformat() if self.expiry_date else None,
                'start_time': self.start_time,
                'end_time': self.end_time,
                'check_in_window_start': self.check_in_window_start,
                'check_in_window_end': self.check_in_window_end,
                'requires_daily_checkin': self.requires_daily_checkin,
                'daily_checkin_start_time': self.daily_checkin_start_time,
                'daily_checkin_end_time': self.daily_checkin_end_time,
                'notes': self.notes,
                'is_active': self.is_active,
                'created_at': self.created_at.isoformat() if self.created_at else None,
            }

        def __repr__(self):
            when = self.scheduled_date.isoformat() if self.scheduled_date else f'weekday {self.day_of_week}'
            return f'<WorkSchedule {self.id}: {self.worker_id} on {when}>'

    return WorkSchedule
