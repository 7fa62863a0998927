"""
Team models
A team belongs to one team leader and, optionally, one supervisor
"""
import uuid
from datetime import datetime


def create_team_models(db):
    """
    Factory function to create Team and TeamMember models

    Args:
        db: SQLAlchemy database instance

    Returns:
        tuple: (Team, TeamMember)
    """

    class Team(db.Model):
        """
        Team model

        Attributes:
            id: UUID string
            name: Team name
            site_location: Site the team works at
            team_leader_id: User leading the team
            supervisor_id: User supervising the team (several teams per supervisor)
        """
        __tablename__ = 'teams'

        id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
        name = db.Column(db.String(120), nullable=False)
        site_location = db.Column(db.String(200))
        team_leader_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
        supervisor_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True, index=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        team_leader = db.relationship('User', foreign_keys=[team_leader_id], lazy=True)
        supervisor = db.relationship('User', foreign_keys=[supervisor_id], lazy=True)
        members = db.relationship('TeamMember', backref='team', lazy=True, cascade='all, delete-orphan')

        def member_ids(self):
            return [member.user_id for member in self.members]

        def to_dict(self):
            return {
                'id': self.id,
                'name': self.name,
                'site_location': self.site_location,
                'team_leader_id': self.team_leader_id,
                'team_leader_name': self.team_leader.display_name if self.team_leader else None,
                'supervisor_id': self.supervisor_id,
                'member_count': len(self.members),
            }

        def __repr__(self):
            return f'<Team {self.id}: {self.name}>'

    class TeamMember(db.Model):
        """Membership of a worker in a team (one row per team/user pair)"""
        __tablename__ = 'team_members'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        team_id = db.Column(db.String(36), db.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False, index=True)
        # May outlive the user row; the analytics loader reports those as orphaned
        user_id = db.Column(db.String(36), nullable=False, index=True)
        joined_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.UniqueConstraint('team_id', 'user_id', name='uix_team_member'),
        )

        def to_dict(self):
            return {
                'id': self.id,
                'team_id': self.team_id,
                'user_id': self.user_id,
                'joined_at': self.joined_at.isoformat() if self.joined_at else None,
            }

        def __repr__(self):
            return f'<TeamMember {self.user_id} in {self.team_id}>'

    return Team, TeamMember
