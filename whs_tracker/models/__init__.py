"""
Database models for the WHS compliance tracker
Centralizes all SQLAlchemy model creation using the factory pattern
"""
from .user import create_user_model, display_name_for, VALID_ROLES
from .team import create_team_models
from .work_schedule import create_work_schedule_model
from .worker_exception import create_worker_exception_model
from .daily_checkin import create_daily_checkin_model


def init_models(db):
    """
    Initialize all models with the database instance

    Args:
        db: SQLAlchemy database instance

    Returns:
        dict: Dictionary containing all model classes
    """
    User = create_user_model(db)
    Team, TeamMember = create_team_models(db)
    WorkSchedule = create_work_schedule_model(db)
    WorkerException = create_worker_exception_model(db)
    DailyCheckIn = create_daily_checkin_model(db)

    return {
        'User': User,
        'Team': Team,
        'TeamMember': TeamMember,
        'WorkSchedule': WorkSchedule,
        'WorkerException': WorkerException,
        'DailyCheckIn': DailyCheckIn,
    }


__all__ = [
    'init_models',
    'create_user_model',
    'create_team_models',
    'create_work_schedule_model',
    'create_worker_exception_model',
    'create_daily_checkin_model',
    'display_name_for',
    'VALID_ROLES',
    # Model registry exports
    'model_registry',
    'get_models',
    'get_db'
]

# Import registry for convenience
from .registry import model_registry, get_models, get_db
