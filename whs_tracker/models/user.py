"""
User model
Represents anyone who signs in: workers, team leaders, supervisors and WHS staff
"""
import uuid
from datetime import datetime


ROLE_WORKER = 'worker'
ROLE_TEAM_LEADER = 'team_leader'
ROLE_SUPERVISOR = 'supervisor'
ROLE_WHS_CONTROL_CENTER = 'whs_control_center'
ROLE_EXECUTIVE = 'executive'

VALID_ROLES = [ROLE_WORKER, ROLE_TEAM_LEADER, ROLE_SUPERVISOR, ROLE_WHS_CONTROL_CENTER, ROLE_EXECUTIVE]


def display_name_for(full_name=None, first_name=None, last_name=None, email=None):
    """
    Name shown on dashboards.

    Falls back from full name, to first + last name, to the local part of
    the email address, to 'Unknown'.
    """
    if full_name and full_name.strip():
        return full_name.strip()

    joined = ' '.join(part.strip() for part in (first_name, last_name) if part and part.strip())
    if joined:
        return joined

    if email and '@' in email:
        return email.split('@')[0]
    return 'Unknown'


def create_user_model(db):
    """Factory function to create User model with db instance"""

    class User(db.Model):
        """
        User model

        Attributes:
            id: UUID string
            email: Sign-in email (unique)
            first_name / last_name / full_name: Name parts, any may be empty
            role: One of VALID_ROLES
            is_active: Whether the account can be used
        """
        __tablename__ = 'users'

        id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
        email = db.Column(db.String(120), unique=True, nullable=False)
        first_name = db.Column(db.String(100))
        last_name = db.Column(db.String(100))
        full_name = db.Column(db.String(200))
        role = db.Column(db.String(30), nullable=False, default=ROLE_WORKER)
        is_active = db.Column(db.Boolean, nullable=False, default=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.Index('idx_users_role', 'role'),
        )

        @property
        def display_name(self):
            return display_name_for(self.full_name, self.first_name, self.last_name, self.email)

        def has_role(self, *roles):
            return self.role in roles

        def to_dict(self):
            return {
                'id': self.id,
                'email': self.email,
                'first_name': self.first_name,
                'last_name': self.last_name,
                'name': self.display_name,
                'role': self.role,
                'is_active': self.is_active,
            }

        def __repr__(self):
            return f'<User {self.id}: {self.email} ({self.role})>'

    return User
