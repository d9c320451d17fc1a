from __future__ import annotations

from datetime import date
from typing import List, Sequence

from src.analytics.nps import calculate_metric
from src.analytics.rollup import completion_stats
from src.models.survey import AttributedResponse, TeamMemberRecord
from src.models.survey_fields import ALL_ROLES, METRIC_NAMES, RoleFilter
from src.schemas.survey_metrics import AggregateSummary, ScopeType


def members_for_role(members: Sequence[TeamMemberRecord], role_filter: RoleFilter) -> List[TeamMemberRecord]:
    if role_filter == ALL_ROLES:
        return list(members)
    return [member for member in members if member.role_type == role_filter]


def responses_for_role(
    responses: Sequence[AttributedResponse], role_filter: RoleFilter
) -> List[AttributedResponse]:
    if role_filter == ALL_ROLES:
        return list(responses)
    return [response for response in responses if response.role_type == role_filter]


def summarize_scope(
    scope_type: ScopeType,
    scope_name: str,
    month: date,
    role_filter: RoleFilter,
    members: Sequence[TeamMemberRecord],
    responses: Sequence[AttributedResponse],
) -> AggregateSummary:
    """Metrics and completion for one scope and role, computed straight from responses.

    ``members`` and ``responses`` must already be restricted to the scope.
    """
    scoped_members = members_for_role(members, role_filter)
    scoped_responses = responses_for_role(responses, role_filter)
    member_ids = {member.id for member in scoped_members}
    completed = len(
        {response.team_member_id for response in scoped_responses if response.team_member_id in member_ids}
    )
    return AggregateSummary(
        scope_type=scope_type,
        scope_name=scope_name,
        month=month,
        role_filter=role_filter,
        metrics={name: calculate_metric(scoped_responses, name) for name in METRIC_NAMES},
        completion=completion_stats(len(scoped_members), len(scoped_responses), completed),
    )
