"""Job and pipeline stage schemas."""

from datetime import datetime
from typing import Literal, Optional, Union
from pydantic import Field, field_validator, model_validator

from api.schemas.common import CamelModel
from database.models.jobs import JobStatus


class StageResponse(CamelModel):
    """A pipeline stage as returned to clients."""

    id: int
    job_id: int
    name: str
    position: int
    is_default: bool
    is_mandatory: bool
    parent_id: Optional[int] = None


class StageCreate(CamelModel):
    """Insert a stage at ``position``, shifting later stages down."""

    name: str = Field(min_length=1, max_length=100)
    position: int = Field(ge=0, description="Zero-based insertion point")
    is_mandatory: bool = False
    parent_id: Optional[int] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class StageReorder(CamelModel):
    position: int = Field(ge=0, description="New zero-based position")


class StageRename(CamelModel):
    name: str = Field(min_length=1, max_length=100)


# ==================== Auto-rejection ===================== #
RuleField = Literal["experience", "location", "skills", "education", "salary_expectation"]
RuleOperator = Literal[
    "less_than", "greater_than", "equals", "not_equals", "between",
    "contains", "not_contains", "contains_all", "contains_any",
]
RuleValue = Union[float, str, list[Union[float, str]]]

NUMERIC_FIELDS = ("experience", "salary_expectation")
OPERATORS_BY_FIELD = {
    "experience": ("less_than", "greater_than", "equals", "not_equals", "between"),
    "salary_expectation": ("less_than", "greater_than", "equals", "not_equals", "between"),
    "location": ("equals", "not_equals", "contains", "not_contains"),
    "education": ("equals", "not_equals", "contains", "not_contains"),
    "skills": ("contains", "not_contains", "contains_all", "contains_any"),
}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class AutoRejectionRule(CamelModel):
    """
    One screening condition. A matching rule rejects the candidate.

    ``logic_connector`` joins this rule to the next one; the chain is folded
    left to right.
    """

    id: Optional[str] = None
    field: RuleField
    operator: RuleOperator
    value: RuleValue
    logic_connector: Literal["AND", "OR"] = "OR"

    @model_validator(mode="after")
    def check_operator(self):
        if self.operator not in OPERATORS_BY_FIELD[self.field]:
            raise ValueError(f"Operator {self.operator} does not apply to {self.field}")
        if self.field in NUMERIC_FIELDS:
            if self.operator == "between":
                if (
                    not isinstance(self.value, list)
                    or len(self.value) != 2
                    or not all(_is_number(v) for v in self.value)
                ):
                    raise ValueError("between takes a [min, max] pair of numbers")
            elif not _is_number(self.value):
                raise ValueError(f"{self.field} rules take a number")
        elif self.field != "skills" and not isinstance(self.value, str):
            raise ValueError(f"{self.field} rules take a text value")
        return self


class AutoRejectionRules(CamelModel):
    enabled: bool = False
    rules: list[AutoRejectionRule] = Field(default_factory=list)


class AutoRejectionResult(CamelModel):
    should_reject: bool
    reason: Optional[str] = None
    triggered_rule: Optional[AutoRejectionRule] = None


class JobCreate(CamelModel):
    """Schema for creating a job requisition."""

    title: str = Field(min_length=1, max_length=255)
    department: str = Field(min_length=1, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    openings: int = Field(default=1, ge=1)
    assigned_recruiter_id: Optional[int] = None
    auto_rejection_rules: Optional[AutoRejectionRules] = None


class JobStatusUpdate(CamelModel):
    status: JobStatus


class JobResponse(CamelModel):
    id: int
    company_id: int
    title: str
    department: str
    location: Optional[str] = None
    openings: int
    status: JobStatus
    assigned_recruiter_id: Optional[int] = None
    auto_rejection_rules: Optional[AutoRejectionRules] = None
    created_at: datetime
    updated_at: datetime


class JobDetailResponse(JobResponse):
    stages: list[StageResponse] = Field(default_factory=list)
