"""
Tests for the OLBI burnout scorer: reversal, per-dimension averages,
classification thresholds and the submission rules.
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.errors import (
    DuplicateQuestionError,
    IncompleteQuestionnaireError,
    InvalidResponseCountError,
    LikertValueOutOfRangeError,
    NoResultsError,
    PatientNotFoundError,
    RequiresPriorTestError,
    TestAlreadyTakenError,
    UnknownQuestionError,
)
from app.models.burnout import (
    BurnoutDimension,
    BurnoutLevel,
    BurnoutTestResult,
    QuestionResponse,
    TestType,
)
from app.models.patient import Patient
from app.services import burnout_scorer
from app.services.burnout_scorer import (
    ResponseItem,
    classify,
    compare,
    get_results,
    get_test_status,
    interpret,
    score_responses,
    submit_burnout_test,
)


def _question(qid, dimension, is_reversed=False):
    return SimpleNamespace(id=qid, dimension=dimension, is_reversed=is_reversed)


def _catalog(reversed_ids=()):
    """Eight plain items per dimension: ids 1-8 exhaustion, 9-16 disengagement."""
    return {
        qid: _question(
            qid,
            BurnoutDimension.exhaustion if qid <= 8 else BurnoutDimension.disengagement,
            qid in reversed_ids,
        )
        for qid in range(1, 17)
    }


def _answers(questions, value):
    return [ResponseItem(question_id=q.id, value=value) for q in questions]


def _answers_for_score(questions, score):
    """Raw answers that make every item contribute `score` after reversal."""
    return [
        ResponseItem(question_id=q.id, value=5 - score if q.is_reversed else score)
        for q in questions
    ]


# ---------------------------------------------------------------------------
# Pure scoring
# ---------------------------------------------------------------------------

class TestScoreResponses:
    def test_all_fours_without_reversal(self):
        catalog = _catalog()
        score = score_responses(_answers(catalog.values(), 4), catalog)
        assert score.exhaustion_avg == Decimal("4.00")
        assert score.disengagement_avg == Decimal("4.00")
        assert score.overall_score == Decimal("4.00")
        assert score.level == BurnoutLevel.high

    def test_reversed_item_raw_four_contributes_one(self):
        catalog = _catalog(reversed_ids={1})
        score = score_responses(_answers(catalog.values(), 4), catalog)
        # (1 + 7 * 4) / 8
        assert score.exhaustion_avg == Decimal("3.63")
        assert score.disengagement_avg == Decimal("4.00")

    def test_dimensions_averaged_separately(self):
        catalog = _catalog()
        responses = [
            ResponseItem(question_id=qid, value=1 if qid <= 8 else 3)
            for qid in catalog
        ]
        score = score_responses(responses, catalog)
        assert score.exhaustion_avg == Decimal("1.00")
        assert score.disengagement_avg == Decimal("3.00")
        assert score.overall_score == Decimal("2.00")
        assert score.level == BurnoutLevel.medium

    def test_unequal_split_uses_per_dimension_counts(self):
        # 10 exhaustion items, 6 disengagement items
        catalog = {
            qid: _question(
                qid,
                BurnoutDimension.exhaustion if qid <= 10 else BurnoutDimension.disengagement,
            )
            for qid in range(1, 17)
        }
        responses = [
            ResponseItem(question_id=qid, value=2 if qid <= 10 else 4)
            for qid in catalog
        ]
        score = score_responses(responses, catalog)
        assert score.exhaustion_avg == Decimal("2.00")
        assert score.disengagement_avg == Decimal("4.00")
        assert score.overall_score == Decimal("3.00")

    def test_missing_dimension_rejected(self):
        catalog = {qid: _question(qid, BurnoutDimension.exhaustion) for qid in range(1, 17)}
        with pytest.raises(IncompleteQuestionnaireError):
            score_responses(_answers(catalog.values(), 2), catalog)

    def test_overall_rounded_half_up(self):
        catalog = _catalog()
        # exhaustion 2.125, disengagement 2.0 → overall 2.0625 → 2.06
        responses = [
            ResponseItem(question_id=qid, value=3 if qid == 1 else 2)
            for qid in catalog
        ]
        score = score_responses(responses, catalog)
        assert score.exhaustion_avg == Decimal("2.13")
        assert score.overall_score == Decimal("2.06")


class TestClassify:
    @pytest.mark.parametrize("overall,level", [
        (Decimal("1.0"), BurnoutLevel.low),
        (Decimal("1.5"), BurnoutLevel.low),
        (Decimal("1.99"), BurnoutLevel.low),
        (Decimal("2.0"), BurnoutLevel.medium),
        (Decimal("2.5"), BurnoutLevel.medium),
        (Decimal("2.74"), BurnoutLevel.medium),
        (Decimal("2.75"), BurnoutLevel.high),
        (Decimal("3.0"), BurnoutLevel.high),
        (Decimal("4.0"), BurnoutLevel.high),
    ])
    def test_levels(self, overall, level):
        assert classify(overall) == level

    def test_thresholds_are_overridable(self):
        assert classify(Decimal("2.5"), high_threshold=Decimal("2.5")) == BurnoutLevel.high
        assert classify(Decimal("1.8"), medium_threshold=Decimal("1.5")) == BurnoutLevel.medium

    def test_classification_uses_unrounded_average(self):
        # 2.749999 would round to 2.75 but is still below the high threshold
        assert classify(Decimal("2.749999")) == BurnoutLevel.medium


class TestInterpret:
    def test_low_has_no_alerts(self):
        result = interpret(BurnoutLevel.low, Decimal("1.5"), Decimal("1.5"))
        assert result.level == BurnoutLevel.low
        assert len(result.details) == 1
        assert result.message and result.recommendation

    def test_dimension_alerts(self):
        result = interpret(BurnoutLevel.high, Decimal("3.2"), Decimal("2.6"))
        assert len(result.details) == 2


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

class TestSubmitBurnoutTest:
    def test_initial_submission_persists_everything(self, db, make_patient, questions):
        patient = make_patient()
        result = submit_burnout_test(
            db, patient.id, TestType.initial, _answers_for_score(questions, 3)
        )

        assert result.score.exhaustion_avg == Decimal("3.00")
        assert result.score.overall_score == Decimal("3.00")
        assert result.score.level == BurnoutLevel.high
        assert result.interpretation.level == BurnoutLevel.high

        stored = db.get(BurnoutTestResult, result.result_id)
        assert stored.test_type == TestType.initial
        assert db.query(QuestionResponse).filter_by(test_result_id=stored.id).count() == 16

        db.expire_all()
        assert db.get(Patient, patient.id).initial_test_completed is True
        assert db.get(Patient, patient.id).final_test_completed is False

    def test_raw_values_stored_before_reversal(self, db, make_patient, questions):
        patient = make_patient()
        result = submit_burnout_test(db, patient.id, TestType.initial, _answers(questions, 4))

        reversed_ids = {q.id for q in questions if q.is_reversed}
        rows = db.query(QuestionResponse).filter_by(test_result_id=result.result_id).all()
        assert {r.raw_value for r in rows} == {4}
        assert len(reversed_ids) == 8
        # 4 reversed items per dimension turn into 1s: (4 * 4 + 4 * 1) / 8
        assert result.score.exhaustion_avg == Decimal("2.50")
        assert result.score.disengagement_avg == Decimal("2.50")

    @pytest.mark.parametrize("score,level", [
        (1, BurnoutLevel.low),
        (2, BurnoutLevel.medium),
        (3, BurnoutLevel.high),
    ])
    def test_levels_end_to_end(self, db, make_patient, questions, score, level):
        patient = make_patient()
        result = submit_burnout_test(
            db, patient.id, TestType.initial, _answers_for_score(questions, score)
        )
        assert result.score.level == level

    def test_final_without_initial_rejected(self, db, make_patient, questions):
        patient = make_patient()
        with pytest.raises(RequiresPriorTestError):
            submit_burnout_test(db, patient.id, TestType.final, _answers(questions, 2))
        assert db.query(BurnoutTestResult).filter_by(patient_id=patient.id).count() == 0

    def test_same_type_twice_rejected(self, db, make_patient, questions):
        patient = make_patient()
        submit_burnout_test(db, patient.id, TestType.initial, _answers(questions, 2))
        with pytest.raises(TestAlreadyTakenError):
            submit_burnout_test(db, patient.id, TestType.initial, _answers(questions, 3))
        assert db.query(BurnoutTestResult).filter_by(patient_id=patient.id).count() == 1

    def test_concurrent_duplicate_rejected(
        self, db, make_patient, questions, other_session, monkeypatch
    ):
        patient = make_patient()
        submit_burnout_test(db, patient.id, TestType.initial, _answers(questions, 2))

        # the second request checked for an existing result before the first committed
        monkeypatch.setattr(
            burnout_scorer, "_find_result", lambda db, patient_id, test_type: None
        )
        with pytest.raises(TestAlreadyTakenError) as exc_info:
            submit_burnout_test(
                other_session, patient.id, TestType.initial, _answers(questions, 3)
            )
        assert exc_info.value.details["test_type"] == "initial"

        assert db.query(BurnoutTestResult).filter_by(patient_id=patient.id).count() == 1
        stored = db.query(BurnoutTestResult).filter_by(patient_id=patient.id).one()
        assert db.query(QuestionResponse).filter_by(test_result_id=stored.id).count() == 16

    def test_initial_then_final(self, db, make_patient, questions):
        patient = make_patient()
        submit_burnout_test(db, patient.id, TestType.initial, _answers_for_score(questions, 3))
        submit_burnout_test(db, patient.id, TestType.final, _answers_for_score(questions, 2))

        results = get_results(db, patient.id)
        assert results.initial.level == BurnoutLevel.high
        assert results.final.level == BurnoutLevel.medium
        assert results.comparison.exhaustion_change == Decimal("-1.00")
        assert results.comparison.disengagement_change == Decimal("-1.00")
        assert results.comparison.improved is True

    def test_wrong_count_rejected(self, db, make_patient, questions):
        patient = make_patient()
        with pytest.raises(InvalidResponseCountError) as exc_info:
            submit_burnout_test(db, patient.id, TestType.initial, _answers(questions[:15], 2))
        assert exc_info.value.details == {"expected": 16, "received": 15}

    def test_out_of_range_value_rejected(self, db, make_patient, questions):
        patient = make_patient()
        responses = _answers(questions, 2)
        responses[3] = ResponseItem(question_id=questions[3].id, value=5)
        with pytest.raises(LikertValueOutOfRangeError):
            submit_burnout_test(db, patient.id, TestType.initial, responses)

        responses[3] = ResponseItem(question_id=questions[3].id, value=0)
        with pytest.raises(LikertValueOutOfRangeError):
            submit_burnout_test(db, patient.id, TestType.initial, responses)

        assert db.query(BurnoutTestResult).filter_by(patient_id=patient.id).count() == 0

    def test_unknown_question_rejected(self, db, make_patient, questions):
        patient = make_patient()
        responses = _answers(questions, 2)
        responses[0] = ResponseItem(question_id=999_999, value=2)
        with pytest.raises(UnknownQuestionError):
            submit_burnout_test(db, patient.id, TestType.initial, responses)

    def test_duplicate_question_rejected(self, db, make_patient, questions):
        patient = make_patient()
        responses = _answers(questions, 2)
        responses[0] = ResponseItem(question_id=questions[1].id, value=2)
        with pytest.raises(DuplicateQuestionError):
            submit_burnout_test(db, patient.id, TestType.initial, responses)

    def test_unknown_patient(self, db, questions):
        with pytest.raises(PatientNotFoundError):
            submit_burnout_test(db, 999_999, TestType.initial, _answers(questions, 2))


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

class TestResultsAndStatus:
    def test_no_results_yet(self, db, make_patient):
        patient = make_patient()
        with pytest.raises(NoResultsError):
            get_results(db, patient.id)

    def test_only_initial_has_no_comparison(self, db, make_patient, questions):
        patient = make_patient()
        submit_burnout_test(db, patient.id, TestType.initial, _answers(questions, 2))
        results = get_results(db, patient.id)
        assert results.initial is not None
        assert results.final is None
        assert results.comparison is None

    def test_status_progression(self, db, make_patient, questions):
        patient = make_patient()
        status = get_test_status(db, patient.id)
        assert status.initial.completed is False
        assert status.final.available is False

        submit_burnout_test(db, patient.id, TestType.initial, _answers_for_score(questions, 1))
        status = get_test_status(db, patient.id)
        assert status.initial.completed is True
        assert status.initial.level == BurnoutLevel.low
        assert status.final.completed is False
        assert status.final.available is True

    def test_compare_requires_both_dimensions_down(self):
        def stored(exh, dis):
            return SimpleNamespace(exhaustion_avg=Decimal(exh), disengagement_avg=Decimal(dis))

        assert compare(stored("3.0", "3.0"), stored("2.0", "2.0")).improved is True
        assert compare(stored("3.0", "3.0"), stored("2.0", "3.5")).improved is False
        assert compare(stored("2.0", "2.0"), stored("2.0", "2.0")).improved is False
