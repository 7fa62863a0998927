"""
Snapshot loader

Fetches everything one analytics request needs in a fixed number of
queries and hands the engine plain snapshot records. Nothing here computes
compliance; see compliance_aggregator for that.
"""
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from whs_tracker.error_handlers.exceptions import DataIntegrityWarning
from whs_tracker.error_handlers.logging import integrity_logger
from whs_tracker.models import get_models
from .compliance_aggregator import AnalyticsSnapshot, TeamSnapshot

logger = logging.getLogger(__name__)


def load_member_ids(team_ids: Iterable[str]) -> Dict[str, str]:
    """worker id -> team id for every membership of the given teams"""
    TeamMember = get_models()['TeamMember']
    team_ids = list(team_ids)
    if not team_ids:
        return {}

    memberships = {}
    rows = TeamMember.query.filter(TeamMember.team_id.in_(team_ids)).order_by(TeamMember.id).all()
    for row in rows:
        # A worker listed in two teams keeps the first membership
        memberships.setdefault(row.user_id, row.team_id)
    return memberships


def _load_team_snapshots(teams) -> List[TeamSnapshot]:
    User = get_models()['User']
    leader_ids = {team.team_leader_id for team in teams if team.team_leader_id}
    leaders = {}
    if leader_ids:
        leaders = {user.id: user for user in User.query.filter(User.id.in_(leader_ids)).all()}

    snapshots = []
    for team in teams:
        leader = leaders.get(team.team_leader_id)
        snapshots.append(TeamSnapshot(
            id=team.id,
            name=team.name,
            site_location=team.site_location,
            team_leader_id=team.team_leader_id,
            team_leader_name=leader.display_name if leader else None,
        ))
    return snapshots


def load_snapshot(teams, fetch_start: date, range_end: date,
                  worker_ids: Optional[Iterable[str]] = None,
                  include_teams: bool = False) -> AnalyticsSnapshot:
    """
    Build the AnalyticsSnapshot for the members of the given teams.

    Args:
        teams: Team model instances in scope
        fetch_start: First date of check-ins to load (start of the previous
            comparison period)
        range_end: Last date of the queried range
        worker_ids: Optional subset of members to include
        include_teams: Fill snapshot.teams for per-team rollups

    Returns:
        AnalyticsSnapshot. Members without a user row are left out and
        reported in snapshot.warnings.
    """
    models = get_models()
    User = models['User']
    WorkSchedule = models['WorkSchedule']
    WorkerException = models['WorkerException']
    DailyCheckIn = models['DailyCheckIn']

    teams = list(teams)
    team_ids = [team.id for team in teams]
    memberships = load_member_ids(team_ids)

    if worker_ids is not None:
        wanted = set(worker_ids)
        memberships = {worker_id: team_id for worker_id, team_id in memberships.items() if worker_id in wanted}

    warnings = []
    workers = {}
    if memberships:
        users = User.query.filter(User.id.in_(list(memberships))).all()
        workers = {user.id: user.display_name for user in users}

        for worker_id in sorted(set(memberships) - set(workers)):
            warnings.append(integrity_logger.record(
                DataIntegrityWarning.ORPHANED_MEMBER,
                f"Team {memberships[worker_id]} lists member {worker_id} with no user record",
                record_id=worker_id,
            ))
            del memberships[worker_id]

    snapshot = AnalyticsSnapshot(
        workers=workers,
        memberships=memberships,
        teams=_load_team_snapshots(teams) if include_teams else [],
        warnings=warnings,
    )
    if not workers:
        logger.debug(f"No workers found for teams {team_ids}")
        return snapshot

    worker_list = list(workers)

    schedules = WorkSchedule.query.filter(
        WorkSchedule.team_id.in_(team_ids),
        WorkSchedule.worker_id.in_(worker_list),
    ).all()
    exceptions = WorkerException.query.filter(WorkerException.user_id.in_(worker_list)).all()
    check_ins = DailyCheckIn.query.filter(
        DailyCheckIn.user_id.in_(worker_list),
        DailyCheckIn.check_in_date >= fetch_start,
        DailyCheckIn.check_in_date <= range_end,
    ).all()

    snapshot.schedules = [schedule.to_snapshot() for schedule in schedules]
    snapshot.exceptions = [exception.to_snapshot() for exception in exceptions]
    snapshot.check_ins = [check_in.to_snapshot() for check_in in check_ins]

    logger.debug(
        f"Loaded snapshot: {len(workers)} workers, {len(snapshot.schedules)} schedules, "
        f"{len(snapshot.exceptions)} exceptions, {len(snapshot.check_ins)} check-ins"
    )
    return snapshot

