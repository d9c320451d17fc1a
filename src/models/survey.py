from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from src.models.survey_fields import RoleType


class TeamMemberRecord(BaseModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    area: Optional[str] = None
    region: Optional[str] = None
    role: Optional[str] = None
    role_type: Optional[RoleType] = None
    hire_date: Optional[date] = None
    active: bool = True

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class SurveyResponseRecord(BaseModel):
    id: str
    team_member_id: Optional[str] = None
    submitted_at: datetime
    # Raw values straight from the response source; validated at calculation time.
    scores: Dict[str, Any] = Field(default_factory=dict)
    feedback: Dict[str, Optional[str]] = Field(default_factory=dict)


class AttributedResponse(SurveyResponseRecord):
    """A response joined to the roster identity of the member who submitted it."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    area: Optional[str] = None
    region: Optional[str] = None
    role_type: Optional[RoleType] = None


class AreaRecord(BaseModel):
    area_name: Optional[str] = None
    region: Optional[str] = None
