"""
Tests for auto-rejection screening.

Tests:
- Rule schema checks
- Rule evaluation and generated reasons
- Screening when a candidate is added to a job
"""

import pytest
from pydantic import ValidationError as SchemaValidationError

from api.schemas.jobs import AutoRejectionRule, AutoRejectionRules
from api.services import candidates as candidate_service
from api.services import jobs as job_service
from api.services import pipelines as pipeline_service
from api.services import stage_history
from api.services.auto_rejection import evaluate_auto_rejection
from core.exceptions import ValidationError
from database.models import ActivityType, Candidate, UserRole
from tests.helpers import as_current_user, stage_id


def _rules(*rules, enabled=True) -> AutoRejectionRules:
    return AutoRejectionRules.model_validate({"enabled": enabled, "rules": list(rules)})


def _candidate(**fields) -> Candidate:
    values = dict(experience_years=5, location="Berlin", skills=["Python", "SQL"],
                  education=None, salary_expectation=None)
    values.update(fields)
    return Candidate(**values)


MIN_EXPERIENCE = {"field": "experience", "operator": "less_than", "value": 3}


class TestRuleSchema:
    """Test rule validation."""

    def test_operator_must_fit_field(self):
        with pytest.raises(SchemaValidationError):
            AutoRejectionRule(field="skills", operator="less_than", value=3)

    def test_between_needs_pair(self):
        with pytest.raises(SchemaValidationError):
            AutoRejectionRule(field="experience", operator="between", value=[1])

    def test_numeric_field_needs_number(self):
        with pytest.raises(SchemaValidationError):
            AutoRejectionRule(field="salary_expectation", operator="greater_than", value="lots")

    def test_camel_case_input(self):
        rule = AutoRejectionRule.model_validate(
            {"field": "location", "operator": "equals", "value": "Remote", "logicConnector": "AND"}
        )
        assert rule.logic_connector == "AND"


class TestEvaluateAutoRejection:
    """Test rule evaluation against a candidate."""

    def test_no_rules(self):
        assert evaluate_auto_rejection(_candidate(), None).should_reject is False

    def test_disabled_rules(self):
        rules = _rules(MIN_EXPERIENCE, enabled=False)
        assert evaluate_auto_rejection(_candidate(experience_years=1), rules).should_reject is False

    def test_experience_below_minimum(self):
        result = evaluate_auto_rejection(_candidate(experience_years=1), _rules(MIN_EXPERIENCE))

        assert result.should_reject is True
        assert result.reason == "Auto-rejected: Experience (1 years) is less than required (3 years)"
        assert result.triggered_rule.field == "experience"

    def test_experience_meets_minimum(self):
        assert evaluate_auto_rejection(_candidate(experience_years=3), _rules(MIN_EXPERIENCE)).should_reject is False

    def test_text_ignores_case(self):
        rules = _rules({"field": "location", "operator": "not_equals", "value": " berlin "})
        assert evaluate_auto_rejection(_candidate(location="BERLIN"), rules).should_reject is False

    def test_missing_value_never_matches(self):
        """A candidate without the field is not rejected on it."""
        rules = _rules({"field": "education", "operator": "not_equals", "value": "Masters"})
        assert evaluate_auto_rejection(_candidate(education=None), rules).should_reject is False

    def test_skills_not_contains(self):
        rules = _rules({"field": "skills", "operator": "not_contains", "value": ["go", "rust"]})
        result = evaluate_auto_rejection(_candidate(skills=["Python"]), rules)

        assert result.should_reject is True
        assert result.reason == "Auto-rejected: Skills (Python) is not containing required (go, rust)"

    def test_between(self):
        rules = _rules({"field": "salary_expectation", "operator": "between", "value": [200000, 500000]})
        result = evaluate_auto_rejection(_candidate(salary_expectation=250000), rules)

        assert result.should_reject is True
        assert result.reason == (
            "Auto-rejected: Salary Expectation (250000) is between required (200000 and 500000)"
        )

    @pytest.mark.parametrize(
        "connector,location,expected",
        [
            ("AND", "Berlin", False),
            ("AND", "Remote", True),
            ("OR", "Berlin", True),
        ],
    )
    def test_connectors(self, connector, location, expected):
        rules = _rules(
            {**MIN_EXPERIENCE, "logicConnector": connector},
            {"field": "location", "operator": "equals", "value": "Remote"},
        )
        candidate = _candidate(experience_years=1, location=location)

        assert evaluate_auto_rejection(candidate, rules).should_reject is expected

    def test_first_matching_rule_is_reported(self):
        rules = _rules(
            {"id": "loc", "field": "location", "operator": "equals", "value": "Paris"},
            {"id": "exp", **MIN_EXPERIENCE},
        )
        result = evaluate_auto_rejection(_candidate(experience_years=1), rules)

        assert result.triggered_rule.id == "exp"

    def test_stored_document(self):
        stored = _rules(MIN_EXPERIENCE).to_json_dict()
        assert evaluate_auto_rejection(_candidate(experience_years=1), stored).should_reject is True

    def test_legacy_document(self):
        stored = {"enabled": True, "rules": {"minExperience": 2, "maxExperience": 10}}

        assert evaluate_auto_rejection(_candidate(experience_years=12), stored).should_reject is True
        assert evaluate_auto_rejection(_candidate(experience_years=5), stored).should_reject is False

    def test_invalid_document(self):
        stored = {"enabled": True, "rules": [{"field": "height", "operator": "equals", "value": 2}]}

        with pytest.raises(ValidationError):
            evaluate_auto_rejection(_candidate(), stored)


class TestScreeningOnAdd:
    """Test rules applied when a candidate joins a job."""

    async def test_rejected_on_add(self, seed):
        """A failing candidate lands in Rejected with the generated reason."""
        company = await seed.company()
        job = await seed.job(company, auto_rejection_rules=_rules(MIN_EXPERIENCE))
        candidate = await seed.candidate(company, experience_years=1)

        application = await seed.application(job, candidate)

        assert application.current_stage_id == stage_id(job, "Rejected")
        history = await stage_history.get_stage_history(seed.db, application.id)
        assert [h.stage_name for h in history] == ["Queue", "Rejected"]
        assert history[1].comment.startswith("Auto-rejected: Experience (1 years)")
        timeline = await candidate_service.get_activity_timeline(seed.db, candidate.id)
        assert [a.activity_type for a in timeline] == [ActivityType.STAGE_CHANGE, ActivityType.ADDED_TO_JOB]
        metadata = timeline[0].activity_metadata
        assert metadata["autoRejected"] is True
        assert metadata["triggeredRule"]["field"] == "experience"
        assert metadata["fromStageName"] == "Queue"

    async def test_passing_candidate_stays(self, seed):
        company = await seed.company()
        job = await seed.job(company, auto_rejection_rules=_rules(MIN_EXPERIENCE))
        candidate = await seed.candidate(company, experience_years=4)

        application = await seed.application(job, candidate)

        assert application.current_stage_id == stage_id(job, "Queue")
        history = await stage_history.get_stage_history(seed.db, application.id)
        assert len(history) == 1

    async def test_without_rejected_stage(self, seed):
        """Screening is skipped when the pipeline has no Rejected stage."""
        company = await seed.company()
        job = await seed.job(company, auto_rejection_rules=_rules(MIN_EXPERIENCE))
        await pipeline_service.rename_stage(seed.db, stage_id(job, "Rejected"), "Declined")
        candidate = await seed.candidate(company, experience_years=1)

        application = await seed.application(job, candidate)

        assert application.current_stage_id == stage_id(job, "Queue")

    async def test_manual_moves_unaffected(self, seed):
        """Rules only run on add; later moves are not screened."""
        company = await seed.company()
        job = await seed.job(company)
        candidate = await seed.candidate(company, experience_years=1)
        application = await seed.application(job, candidate)
        admin = await seed.user(company, role=UserRole.ADMIN)
        await job_service.update_auto_rejection_rules(
            seed.db, job.id, _rules(MIN_EXPERIENCE), as_current_user(admin)
        )

        result = await candidate_service.change_stage(seed.db, application.id, stage_id(job, "Screening"))

        assert result.to_stage == "Screening"


class TestUpdateRules:
    """Test replacing a job's rules."""

    async def test_set_and_clear(self, seed):
        company = await seed.company()
        admin = await seed.user(company, role=UserRole.ADMIN)
        job = await seed.job(company)
        user = as_current_user(admin)

        updated = await job_service.update_auto_rejection_rules(seed.db, job.id, _rules(MIN_EXPERIENCE), user)
        assert updated.auto_rejection_rules["enabled"] is True
        assert updated.auto_rejection_rules["rules"][0]["operator"] == "less_than"

        cleared = await job_service.update_auto_rejection_rules(seed.db, job.id, None, user)
        assert cleared.auto_rejection_rules is None
