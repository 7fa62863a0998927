"""
Daily check-in model
A worker's self-reported readiness for the day
"""
from datetime import datetime

from whs_tracker.services.checkin_reconciler import CheckInSnapshot


def create_daily_checkin_model(db):
    """Factory function to create DailyCheckIn model with db instance"""

    class DailyCheckIn(db.Model):
        """
        Daily check-in (one per worker per date)

        Attributes:
            user_id: Worker who checked in
            check_in_date: Calendar date of the check-in
            predicted_readiness: 'Green', 'Amber' or 'Red'
            pain_level / fatigue_level / stress_level: 0-10 self ratings
            sleep_quality: 0-12 self rating
            additional_notes: Free text
        """
        __tablename__ = 'daily_checkins'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
        check_in_date = db.Column(db.Date, nullable=False, index=True)
        predicted_readiness = db.Column(db.String(10), nullable=False)
        pain_level = db.Column(db.Integer)
        fatigue_level = db.Column(db.Integer)
        stress_level = db.Column(db.Integer)
        sleep_quality = db.Column(db.Integer)
        additional_notes = db.Column(db.Text)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.UniqueConstraint('user_id', 'check_in_date', name='uix_checkin_user_date'),
        )

        user = db.relationship('User', foreign_keys=[user_id], lazy=True)

        def to_snapshot(self):
            """Read-only record for the analytics engine"""
            return CheckInSnapshot.create(
                worker_id=self.user_id,
                check_in_date=self.check_in_date,
                readiness=self.predicted_readiness,
                id=self.id,
                created_at=self.created_at,
            )

        def to_dict(self):
            return {
                'id': self.id,
                'user_id': self.user_id,
                'check_in_date': self.check_in_date.isoformat() if self.check_in_date else None,
                'predicted_readiness': self.predicted_readiness,
                'pain_level': self.pain_level,
                'fatigue_level': self.fatigue_level,
                'stress_level': self.stress_level,
                'sleep_quality': self.sleep_quality,
                'additional_notes': self.additional_notes,
                'created_at': self.created_at.isoformat() if self.created_at else None,
            }

        def __repr__(self):
            return f'<DailyCheckIn {self.id}: {self.user_id} on {self.check_in_date} - {self.predicted_readiness}>'

    return DailyCheckIn
