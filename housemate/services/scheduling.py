"""Assignee selection for the weekly scheduler.

Policy: members with the lowest total difficulty already obligated this
week go first; ties fall back to join order (``joined_at`` then
membership id). Same inputs always give the same answer, and a member is
never picked twice for the same task and week.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Set

from housemate.models.task import Task
from housemate.services.ownership import MemberRecord


def weekly_load(tasks: Iterable[Task], week_start: datetime) -> Dict[int, int]:
    """Sum of task difficulty per user over the week's assignments."""
    load = defaultdict(int)
    for task in tasks:
        for assignment in task.assignments_for_week(week_start):
            load[assignment.user_id] += task.difficulty
    return load


def rank_members(members: Iterable[MemberRecord], load: Dict[int, int]) -> List[MemberRecord]:
    return sorted(members, key=lambda member: (load.get(member.user_id, 0),) + member.seniority)


def select_assignees(
    members: Iterable[MemberRecord],
    already_assigned: Set[int],
    required: int,
    load: Dict[int, int]
) -> List[int]:
    """
    Choose who still has to be obligated for a task this week.

    Args:
        members: Current, repaired membership of the group
        already_assigned: Users holding an assignment for this task and week
        required: Number of people the task needs
        load: Difficulty already assigned to each user this week

    Returns:
        User ids to assign, possibly fewer than needed when the group
        is too small, empty when the task is already covered
    """
    needed = required - len(already_assigned)
    if needed <= 0:
        return []

    eligible = {}
    for member in members:
        if member.user_id is None or member.user_id in already_assigned:
            continue
        eligible.setdefault(member.user_id, member)

    ranked = rank_members(eligible.values(), load)
    return [member.user_id for member in ranked[:needed]]
