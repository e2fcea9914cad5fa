"""
Tests for the achievement engine: rule predicates, idempotent grants and
the concurrent-grant race resolved by the ledger's unique constraint.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.errors import PatientNotFoundError
from app.models.achievement import Achievement, AchievementCategory, PatientAchievement
from app.services import achievement_engine
from app.services.achievement_engine import (
    ACHIEVEMENT_RULES,
    PatientStats,
    check_achievements,
    evaluate,
    get_achievement_stats,
    grant,
    list_achievements,
)
from app.services.progress_aggregator import complete_activity

DAY_1 = datetime(2026, 4, 1, 9, 0, tzinfo=timezone.utc)


def _stats(**kwargs) -> PatientStats:
    values = dict(activities_completed=0, modules_completed=0, progress_percentage=0, streak=0)
    values.update(kwargs)
    return PatientStats(**values)


def _rule(code):
    return next(r for r in ACHIEVEMENT_RULES if r.code == code)


# ---------------------------------------------------------------------------
# Rule predicates (pure)
# ---------------------------------------------------------------------------

class TestRules:
    def test_rule_codes_unique(self):
        codes = [r.code for r in ACHIEVEMENT_RULES]
        assert len(codes) == len(set(codes)) == 8

    @pytest.mark.parametrize("code,metric,threshold", [
        ("first_step", "activities_completed", 1),
        ("streak_3", "streak", 3),
        ("first_module", "modules_completed", 1),
        ("consistent", "activities_completed", 10),
        ("streak_7", "streak", 7),
        ("halfway", "progress_percentage", 50),
        ("burnout_warrior", "progress_percentage", 100),
        ("streak_14", "streak", 14),
    ])
    def test_threshold_boundary(self, code, metric, threshold):
        rule = _rule(code)
        assert rule.holds(_stats(**{metric: threshold})) is True
        assert rule.holds(_stats(**{metric: threshold - 1})) is False

    def test_categories(self):
        assert _rule("first_step").category == AchievementCategory.bronze
        assert _rule("streak_14").category == AchievementCategory.diamond

    def test_nothing_holds_for_zero_stats(self):
        assert not any(r.holds(_stats()) for r in ACHIEVEMENT_RULES)


# ---------------------------------------------------------------------------
# evaluate / check_achievements
# ---------------------------------------------------------------------------

class TestEvaluate:
    def test_grants_only_rules_that_hold(self, db, make_patient):
        patient = make_patient()
        granted = evaluate(db, patient.id, _stats(activities_completed=1, streak=3))
        db.commit()
        assert {g.code for g in granted} == {"first_step", "streak_3"}
        assert {g.category for g in granted} == {
            AchievementCategory.bronze, AchievementCategory.silver,
        }
        assert all(g.granted_at is not None for g in granted)

    def test_second_evaluation_returns_nothing(self, db, make_patient):
        patient = make_patient()
        stats = _stats(activities_completed=1)
        assert len(evaluate(db, patient.id, stats)) == 1
        db.commit()
        assert evaluate(db, patient.id, stats) == []

    def test_check_without_progress_is_empty(self, db, make_patient):
        patient = make_patient()
        assert check_achievements(db, patient.id) == []
        assert check_achievements(db, patient.id) == []

    def test_check_unknown_patient(self, db):
        with pytest.raises(PatientNotFoundError):
            check_achievements(db, 999_999)

    def test_rule_without_catalog_row_is_skipped(self, db, make_patient, monkeypatch):
        patient = make_patient()
        ghost = achievement_engine.AchievementRule(
            "ghost", "Fantasma", AchievementCategory.bronze, "activities_completed", 1
        )
        monkeypatch.setattr(achievement_engine, "ACHIEVEMENT_RULES", (ghost,))
        assert evaluate(db, patient.id, _stats(activities_completed=5)) == []


# ---------------------------------------------------------------------------
# Concurrent grants
# ---------------------------------------------------------------------------

class TestConcurrentGrant:
    def test_losing_grant_is_discarded(self, db, make_patient, other_session):
        patient = make_patient()
        first_step = db.query(Achievement).filter(Achievement.code == "first_step").one()

        # request A wins the race and commits
        assert grant(db, patient.id, first_step) is not None
        db.commit()

        # request B read the ledger before A committed and tries again
        achievement = other_session.get(Achievement, first_step.id)
        assert grant(other_session, patient.id, achievement) is None
        other_session.rollback()

        count = (
            db.query(PatientAchievement)
            .filter(
                PatientAchievement.patient_id == patient.id,
                PatientAchievement.achievement_id == first_step.id,
            )
            .count()
        )
        assert count == 1

    def test_stale_fast_path_still_grants_once(self, db, make_patient, program, monkeypatch):
        """Two completions that both saw an empty ledger grant Primer Paso once."""
        patient = make_patient()
        (_, activities), _, _ = program

        first = complete_activity(db, patient.id, activities[0].id, now=DAY_1)
        assert {g.code for g in first.new_achievements} == {"first_step"}

        # the second request's in-memory check missed the first grant
        monkeypatch.setattr(achievement_engine, "_granted_ids", lambda db, patient_id: set())
        second = complete_activity(db, patient.id, activities[1].id, now=DAY_1)
        assert second.new_achievements == []

        monkeypatch.undo()
        stats = get_achievement_stats(db, patient.id)
        assert stats.achievements_obtained == 1
        assert stats.activities_completed == 2


# ---------------------------------------------------------------------------
# Streak achievements
# ---------------------------------------------------------------------------

class TestStreakAchievements:
    def test_three_day_streak(self, db, make_patient, program):
        patient = make_patient()
        (_, activities), _, _ = program

        codes = []
        for day, activity in enumerate(activities):
            result = complete_activity(db, patient.id, activity.id, now=DAY_1 + timedelta(days=day))
            codes.append({g.code for g in result.new_achievements})

        assert "streak_3" not in codes[0] | codes[1]
        assert "streak_3" in codes[2]

    def test_broken_streak_does_not_grant(self, db, make_patient, program):
        patient = make_patient()
        (_, activities), _, _ = program

        granted = set()
        for day, activity in zip((0, 1, 3), activities):
            result = complete_activity(db, patient.id, activity.id, now=DAY_1 + timedelta(days=day))
            granted |= {g.code for g in result.new_achievements}
        assert "streak_3" not in granted

    def test_streak_grant_survives_broken_streak(self, db, make_patient, program):
        patient = make_patient()
        (_, activities), _, _ = program
        for day, activity in enumerate(activities):
            complete_activity(db, patient.id, activity.id, now=DAY_1 + timedelta(days=day))

        # a week later the streak is 0 but the grant is permanent
        later = date(2026, 4, 10)
        assert check_achievements(db, patient.id, today=later) == []
        overview = list_achievements(db, patient.id)
        silver = {s.code: s for s in overview.by_category[AchievementCategory.silver]}
        assert silver["streak_3"].obtained is True


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

class TestReadModels:
    def test_overview_groups_by_category(self, db, make_patient):
        patient = make_patient()
        overview = list_achievements(db, patient.id)

        assert list(overview.by_category) == list(achievement_engine.CATEGORY_ORDER)
        assert overview.total == 8
        assert overview.obtained == 0
        assert overview.percentage == 0
        assert len(overview.by_category[AchievementCategory.silver]) == 3

    def test_overview_runs_a_check(self, db, make_patient, program, monkeypatch):
        patient = make_patient()
        (_, activities), _, _ = program

        # a completion whose grants were lost leaves the ledger behind
        monkeypatch.setattr(achievement_engine, "evaluate", lambda db, patient_id, stats: [])
        complete_activity(db, patient.id, activities[0].id, now=DAY_1)
        monkeypatch.undo()

        overview = list_achievements(db, patient.id)
        assert [g.code for g in overview.new_achievements] == ["first_step"]
        assert overview.obtained == 1
        assert overview.percentage == 13

    def test_stats(self, db, make_patient, program):
        patient = make_patient()
        (_, activities), _, _ = program
        for activity in activities:
            complete_activity(db, patient.id, activity.id, now=DAY_1)

        stats = get_achievement_stats(db, patient.id)
        assert stats.activities_completed == 3
        assert stats.activities_total == 6
        assert stats.activities_percentage == 50
        assert stats.modules_completed == 1
        assert stats.modules_total == 3
        assert stats.achievements_obtained == 3
        assert stats.achievements_total == 8
        assert stats.achievements_percentage == 38
