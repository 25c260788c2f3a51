"""
Auto-rejection screening.

A job may carry rules on a candidate's experience, location, skills,
education and salary expectation. They are evaluated when the candidate is
added to the job; a match moves the application straight to the Rejected
stage with a generated reason.
"""

from typing import Any, List, Optional, Union
import logging

from pydantic import ValidationError as SchemaValidationError

from api.schemas.jobs import (
    NUMERIC_FIELDS,
    AutoRejectionResult,
    AutoRejectionRule,
    AutoRejectionRules,
)
from core.exceptions import ValidationError
from database.models.candidates import Candidate

logger = logging.getLogger(__name__)


REJECTED_STAGE = "Rejected"

# Rule field -> Candidate attribute
CANDIDATE_ATTRIBUTES = {
    "experience": "experience_years",
    "location": "location",
    "skills": "skills",
    "education": "education",
    "salary_expectation": "salary_expectation",
}

FIELD_LABELS = {
    "experience": "Experience",
    "location": "Location",
    "skills": "Skills",
    "education": "Education",
    "salary_expectation": "Salary Expectation",
}

OPERATOR_LABELS = {
    "less_than": "less than",
    "greater_than": "greater than",
    "equals": "equal to",
    "not_equals": "not equal to",
    "between": "between",
    "contains": "containing",
    "not_contains": "not containing",
    "contains_all": "containing all of",
    "contains_any": "containing any of",
}


# ==================== Rule parsing ===================== #
def _from_legacy(raw: dict) -> dict:
    """Older jobs stored ``{"rules": {"minExperience": n, "maxExperience": m}}``."""
    legacy = raw.get("rules") or {}
    rules = []
    if legacy.get("minExperience") is not None:
        rules.append({"id": "legacy-1", "field": "experience", "operator": "less_than",
                      "value": legacy["minExperience"]})
    if legacy.get("maxExperience") is not None:
        rules.append({"id": f"legacy-{len(rules) + 1}", "field": "experience",
                      "operator": "greater_than", "value": legacy["maxExperience"]})
    return {"enabled": bool(raw.get("enabled")), "rules": rules}


def parse_rules(raw: Union[AutoRejectionRules, dict, None]) -> Optional[AutoRejectionRules]:
    """
    Read rules as stored on a job.

    Raises:
        ValidationError: The stored document is not a valid rule set
    """
    if raw is None or isinstance(raw, AutoRejectionRules):
        return raw
    if isinstance(raw.get("rules"), dict):
        raw = _from_legacy(raw)
    try:
        return AutoRejectionRules.model_validate(raw)
    except SchemaValidationError as e:
        first = e.errors()[0]
        logger.warning(f"Invalid auto-rejection rules: {first['msg']}")
        raise ValidationError({"autoRejectionRules": [first["msg"]]}) from e


def rules_to_json(rules: Optional[AutoRejectionRules]) -> Optional[dict]:
    return rules.to_json_dict() if rules is not None else None


# ==================== Evaluation ===================== #
def _matches_number(actual: Optional[float], operator: str, expected: Any) -> bool:
    if actual is None:
        return False
    if operator == "less_than":
        return actual < expected
    if operator == "greater_than":
        return actual > expected
    if operator == "equals":
        return actual == expected
    if operator == "not_equals":
        return actual != expected
    if operator == "between":
        low, high = expected
        return low <= actual <= high
    return False


def _matches_text(actual: Optional[str], operator: str, expected: str) -> bool:
    if actual is None:
        return False
    actual = actual.strip().lower()
    expected = expected.strip().lower()
    if operator == "equals":
        return actual == expected
    if operator == "not_equals":
        return actual != expected
    if operator == "contains":
        return expected in actual
    if operator == "not_contains":
        return expected not in actual
    return False


def _matches_list(actual: Optional[List[str]], operator: str, expected: Any) -> bool:
    if actual is None:
        return False
    have = {item.strip().lower() for item in actual}
    wanted = expected if isinstance(expected, list) else [expected]
    wanted = [str(item).strip().lower() for item in wanted]
    if operator in ("contains", "contains_any"):
        return any(item in have for item in wanted)
    if operator == "not_contains":
        return not any(item in have for item in wanted)
    if operator == "contains_all":
        return all(item in have for item in wanted)
    return False


def _candidate_value(candidate: Candidate, field: str):
    return getattr(candidate, CANDIDATE_ATTRIBUTES[field], None)


def rule_matches(candidate: Candidate, rule: AutoRejectionRule) -> bool:
    actual = _candidate_value(candidate, rule.field)
    if rule.field in NUMERIC_FIELDS:
        return _matches_number(actual, rule.operator, rule.value)
    if rule.field == "skills":
        return _matches_list(actual, rule.operator, rule.value)
    return _matches_text(actual, rule.operator, rule.value)


def _format(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def rejection_reason(candidate: Candidate, rule: AutoRejectionRule) -> str:
    """Human-readable reason, e.g. ``Auto-rejected: Experience (1 years) is less than required (3 years)``."""
    unit = " years" if rule.field == "experience" else ""

    if isinstance(rule.value, list):
        separator = " and " if rule.operator == "between" else ", "
        expected = separator.join(_format(v) for v in rule.value)
    else:
        expected = _format(rule.value)

    actual = _candidate_value(candidate, rule.field)
    if isinstance(actual, list):
        actual = ", ".join(actual) or "none"
    elif actual is None:
        actual = "not specified"
    else:
        actual = _format(actual)

    return (
        f"Auto-rejected: {FIELD_LABELS[rule.field]} ({actual}{unit}) is "
        f"{OPERATOR_LABELS[rule.operator]} required ({expected}{unit})"
    )


def evaluate_auto_rejection(
    candidate: Candidate, rules: Union[AutoRejectionRules, dict, None]
) -> AutoRejectionResult:
    """
    Decide whether a candidate fails a job's screening rules.

    Rules are folded left to right; each rule's ``logic_connector`` decides
    how the next rule combines with the result so far (``OR`` by default).
    The first matching rule is reported as the trigger.

    Args:
        candidate: Candidate being screened
        rules: The job's rules, parsed or as stored

    Returns:
        AutoRejectionResult with the reason when the candidate is rejected
    """
    rules = parse_rules(rules)
    if rules is None or not rules.enabled or not rules.rules:
        return AutoRejectionResult(should_reject=False)

    result = False
    triggered: Optional[AutoRejectionRule] = None
    connector = None
    for rule in rules.rules:
        matched = rule_matches(candidate, rule)
        if connector is None:
            result = matched
        elif connector == "AND":
            result = result and matched
        else:
            result = result or matched
        if matched and triggered is None:
            triggered = rule
        connector = rule.logic_connector

    if not result or triggered is None:
        return AutoRejectionResult(should_reject=False)
    return AutoRejectionResult(
        should_reject=True,
        reason=rejection_reason(candidate, triggered),
        triggered_rule=triggered,
    )
