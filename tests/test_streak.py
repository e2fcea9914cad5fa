"""
Tests for the streak calculator: consecutive calendar days with at least
one completed activity, anchored at today or yesterday.
"""
from datetime import date, datetime, timedelta, timezone

from app.services.progress_aggregator import complete_activity
from app.services.streak import calculate_streak, streak_from_dates, to_calendar_day

TODAY = date(2026, 3, 15)


def _days(*offsets):
    return [TODAY - timedelta(days=o) for o in offsets]


class TestStreakFromDates:
    def test_empty_is_zero(self):
        assert streak_from_dates([], TODAY) == 0

    def test_three_consecutive_days_ending_today(self):
        assert streak_from_dates(_days(0, 1, 2), TODAY) == 3

    def test_gap_of_two_breaks_the_chain(self):
        assert streak_from_dates(_days(0, 2), TODAY) == 1

    def test_streak_may_end_yesterday(self):
        assert streak_from_dates(_days(1, 2, 3), TODAY) == 3

    def test_last_completion_two_days_ago_is_zero(self):
        assert streak_from_dates(_days(2, 3, 4), TODAY) == 0

    def test_same_day_completions_count_once(self):
        stamps = [
            datetime(2026, 3, 15, 8, 0, tzinfo=timezone.utc),
            datetime(2026, 3, 15, 9, 30, tzinfo=timezone.utc),
            datetime(2026, 3, 15, 22, 45, tzinfo=timezone.utc),
            datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc),
        ]
        assert streak_from_dates(stamps, TODAY) == 2

    def test_input_order_does_not_matter(self):
        assert streak_from_dates(_days(2, 0, 1), TODAY) == 3

    def test_stops_at_first_gap_even_with_older_runs(self):
        # 0,1 then a gap, then a long older run
        assert streak_from_dates(_days(0, 1, 5, 6, 7, 8), TODAY) == 2

    def test_future_dated_completion_is_ignored(self):
        assert streak_from_dates(_days(-1, 0, 1), TODAY) == 2


class TestToCalendarDay:
    def test_aware_datetime_converted_to_utc_day(self):
        # 23:30 at UTC-5 is already the next day in UTC
        value = datetime(2026, 3, 14, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert to_calendar_day(value) == date(2026, 3, 15)

    def test_naive_datetime_taken_as_utc(self):
        assert to_calendar_day(datetime(2026, 3, 15, 23, 59)) == date(2026, 3, 15)

    def test_date_passes_through(self):
        assert to_calendar_day(TODAY) == TODAY


class TestCalculateStreak:
    def test_no_completions(self, db, make_patient):
        patient = make_patient()
        assert calculate_streak(db, patient.id, TODAY) == 0

    def test_completions_on_consecutive_days(self, db, make_patient, program):
        patient = make_patient()
        _, activities = program[0]
        for offset, activity in zip((2, 1, 0), activities):
            stamp = datetime(2026, 3, 15 - offset, 10, 0, tzinfo=timezone.utc)
            complete_activity(db, patient.id, activity.id, now=stamp)

        assert calculate_streak(db, patient.id, TODAY) == 3
        # seen from two days later the run is over
        assert calculate_streak(db, patient.id, TODAY + timedelta(days=2)) == 0
