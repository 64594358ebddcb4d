"""Tests for the frequency validator."""
from datetime import date, datetime, timezone


def _period(start, end):
    from goal_engine.models.goal_spec import Period

    return Period(start=start, end=end)


def _occurrences(*days, month=1):
    from goal_engine.models.schedule import Occurrence

    return [Occurrence(date=date(2024, month, day), time="07:00") for day in days]


def _completions(*timestamps):
    from goal_engine.models.frequency import CompletionRecord

    return [CompletionRecord(timestamp=ts) for ts in timestamps]


class TestWeekBuckets:
    """Tests for week bucket partitioning."""

    def test_start_weekday_anchor(self):
        """Test buckets aligned to the period's first weekday."""
        from goal_engine.models.frequency import WeekAnchor
        from goal_engine.services.frequency_validator import week_buckets

        buckets = week_buckets(_period(date(2024, 1, 10), date(2024, 1, 21)), WeekAnchor.START_WEEKDAY)

        assert [(b.start.day, b.end.day, b.complete) for b in buckets] == [(10, 16, True), (17, 21, False)]

    def test_iso_week_anchor(self):
        """Test buckets aligned to Monday."""
        from goal_engine.models.frequency import WeekAnchor
        from goal_engine.services.frequency_validator import week_buckets

        buckets = week_buckets(_period(date(2024, 1, 10), date(2024, 1, 21)), WeekAnchor.ISO_WEEK)

        assert [(b.start.day, b.end.day, b.complete) for b in buckets] == [(10, 14, False), (15, 21, True)]
        assert buckets[0].days == 5

    def test_month_buckets(self):
        """Test calendar-month buckets clipped to the period."""
        from goal_engine.services.frequency_validator import month_buckets

        buckets = month_buckets(_period(date(2024, 1, 15), date(2024, 3, 10)))

        assert [(b.start, b.end, b.complete) for b in buckets] == [
            (date(2024, 1, 15), date(2024, 1, 31), False),
            (date(2024, 2, 1), date(2024, 2, 29), True),
            (date(2024, 3, 1), date(2024, 3, 10), False),
        ]


class TestCalendarBuckets:
    """Tests for calendar-bucket checks."""

    def test_three_per_week_fails_four(self):
        """Test Mon/Tue/Wed over two weeks against at least 4 per week."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_calendar_buckets

        result = check_calendar_buckets(
            _occurrences(8, 9, 10, 15, 16, 17, 22),
            _period(date(2024, 1, 8), date(2024, 1, 22)),
            CountRule(operator=">=", count=4),
        )

        assert result.passed is False
        assert result.failure_summary == "week of 2024-01-08: 3 < 4; week of 2024-01-15: 3 < 4"
        assert [(b.count, b.complete, b.checked) for b in result.per_bucket] == [
            (3, True, True),
            (3, True, True),
            (1, False, False),
        ]

    def test_added_days_pass_four(self):
        """Test that adding a Thursday in each week satisfies the rule."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_calendar_buckets

        result = check_calendar_buckets(
            _occurrences(8, 9, 10, 11, 15, 16, 17, 18, 22),
            _period(date(2024, 1, 8), date(2024, 1, 22)),
            CountRule(operator=">=", count=4),
        )

        assert result.passed is True
        assert result.failure_summary == ""

    def test_exactly_n_passes_and_n_minus_one_fails(self):
        """Test the boundary at exactly the threshold."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_calendar_buckets

        period = _period(date(2024, 1, 8), date(2024, 1, 21))
        rule = CountRule(count=3)

        assert check_calendar_buckets(_occurrences(8, 9, 10, 15, 16, 17), period, rule).passed is True
        result = check_calendar_buckets(_occurrences(8, 9, 10, 15, 17), period, rule)
        assert result.passed is False
        assert result.failure_summary == "week of 2024-01-15: 2 < 3"

    def test_zero_occurrences_fail(self):
        """Test that an empty list yields failing counts, not an error."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_calendar_buckets

        result = check_calendar_buckets([], _period(date(2024, 1, 8), date(2024, 1, 14)), CountRule(count=1))

        assert result.passed is False
        assert result.per_bucket[0].count == 0

    def test_partial_week_only_passes_vacuously(self):
        """Test that a period shorter than a week passes when partial weeks are excluded."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_calendar_buckets

        result = check_calendar_buckets([], _period(date(2024, 1, 8), date(2024, 1, 10)), CountRule(count=3))

        assert result.passed is True
        assert result.per_bucket[0].checked is False

    def test_enforce_partial_weeks(self):
        """Test that partial weeks use the same threshold when enforced."""
        from goal_engine.models.frequency import CountRule, WeekBoundaryConfig
        from goal_engine.services.frequency_validator import check_calendar_buckets

        result = check_calendar_buckets(
            _occurrences(8, 9, 10, 11, 15, 16, 17, 18, 22),
            _period(date(2024, 1, 8), date(2024, 1, 22)),
            CountRule(count=4),
            WeekBoundaryConfig(enforce_partial_weeks=True),
        )

        assert result.passed is False
        assert result.failure_summary == "week of 2024-01-22: 1 < 4"

    def test_iso_anchor_changes_buckets(self):
        """Test that Monday anchoring regroups a mid-week period."""
        from goal_engine.models.frequency import CountRule, WeekBoundaryConfig
        from goal_engine.services.frequency_validator import check_calendar_buckets

        result = check_calendar_buckets(
            _occurrences(10, 12, 15, 16),
            _period(date(2024, 1, 10), date(2024, 1, 21)),
            CountRule(count=2),
            WeekBoundaryConfig(anchor="isoWeek"),
        )

        assert result.passed is True
        assert [b.count for b in result.per_bucket] == [2, 2]

    def test_exactly_and_at_most(self):
        """Test shortfall symbols for == and <= rules."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_calendar_buckets

        period = _period(date(2024, 1, 8), date(2024, 1, 14))
        occurrences = _occurrences(8, 9, 10)

        exact = check_calendar_buckets(occurrences, period, CountRule(operator="==", count=2))
        at_most = check_calendar_buckets(occurrences, period, CountRule(operator="<=", count=2))

        assert exact.failure_summary == "week of 2024-01-08: 3 != 2"
        assert at_most.failure_summary == "week of 2024-01-08: 3 > 2"

    def test_per_day(self):
        """Test one-day buckets."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_calendar_buckets

        result = check_calendar_buckets(
            _occurrences(8, 9),
            _period(date(2024, 1, 8), date(2024, 1, 10)),
            CountRule(count=1, unit="per_day"),
        )

        assert result.passed is False
        assert result.failure_summary == "2024-01-10: 0 < 1"
        assert len(result.per_bucket) == 3

    def test_per_month(self):
        """Test month buckets with and without partial enforcement."""
        from goal_engine.models.frequency import CountRule, WeekBoundaryConfig
        from goal_engine.services.frequency_validator import check_calendar_buckets

        period = _period(date(2024, 1, 15), date(2024, 3, 10))
        occurrences = _occurrences(1, 5, 12, 19, 26, month=2)
        rule = CountRule(count=4, unit="per_month")

        assert check_calendar_buckets(occurrences, period, rule).passed is True

        enforced = check_calendar_buckets(
            occurrences, period, rule, WeekBoundaryConfig(enforce_partial_weeks=True)
        )
        assert enforced.failure_summary == "month of 2024-01: 0 < 4; month of 2024-03: 0 < 4"

    def test_ignores_dates_outside_period(self):
        """Test that occurrences outside the period do not count."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_calendar_buckets

        result = check_calendar_buckets(
            _occurrences(1, 2, 8),
            _period(date(2024, 1, 8), date(2024, 1, 14)),
            CountRule(count=2),
        )

        assert result.per_bucket[0].count == 1


class TestDeclaredTarget:
    """Tests for checking a declared weekly target."""

    def test_declared_target_meets_rule(self):
        """Test that a weekly target at the threshold passes."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_declared_target

        result = check_declared_target(3, _period(date(2024, 1, 1), date(2024, 1, 31)), CountRule(count=3))

        assert result.passed is True
        assert [b.count for b in result.per_bucket] == [3, 3, 3, 3, 3]
        assert result.per_bucket[-1].complete is False

    def test_declared_target_below_rule(self):
        """Test that every complete week is reported when the target is too low."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_declared_target

        result = check_declared_target(3, _period(date(2024, 1, 1), date(2024, 1, 31)), CountRule(count=4))

        assert result.passed is False
        assert result.failure_summary.count("3 < 4") == 4

    def test_partial_week_capped_by_days(self):
        """Test that a partial week is credited at most one per day."""
        from goal_engine.models.frequency import CountRule, WeekBoundaryConfig
        from goal_engine.services.frequency_validator import check_declared_target

        result = check_declared_target(
            5,
            _period(date(2024, 1, 1), date(2024, 1, 9)),
            CountRule(count=3),
            WeekBoundaryConfig(enforce_partial_weeks=True),
        )

        assert [b.count for b in result.per_bucket] == [5, 2]
        assert result.failure_summary == "week of 2024-01-08: 2 < 3"

    def test_non_weekly_rule(self):
        """Test that only per-week rules apply to a declared weekly target."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.services.frequency_validator import check_declared_target

        result = check_declared_target(
            3, _period(date(2024, 1, 1), date(2024, 1, 31)), CountRule(count=1, unit="per_day")
        )

        assert result.passed is False
        assert result.failure_summary == "declared weekly targets cannot be checked per_day"


class TestRollingWindow:
    """Tests for rolling-window checks."""

    def test_single_complete_window_passes(self):
        """Test three distinct days in one seven-day window."""
        from goal_engine.services.frequency_validator import check_rolling_window

        result = check_rolling_window(
            _completions(datetime(2024, 1, 1, 8), datetime(2024, 1, 3, 8), datetime(2024, 1, 5, 8)),
            3,
            _period(date(2024, 1, 1), date(2024, 1, 7)),
        )

        assert result.passed is True
        assert len(result.per_bucket) == 7
        assert [b.checked for b in result.per_bucket] == [False] * 6 + [True]

    def test_window_shortfall_summary(self):
        """Test the failure summary names the window end date."""
        from goal_engine.services.frequency_validator import check_rolling_window

        result = check_rolling_window(
            _completions(datetime(2024, 1, 1, 8), datetime(2024, 1, 3, 8), datetime(2024, 1, 5, 8)),
            4,
            _period(date(2024, 1, 1), date(2024, 1, 7)),
        )

        assert result.passed is False
        assert result.failure_summary == "window ending 2024-01-07: 3 < 4"

    def test_same_day_counts_once(self):
        """Test that several completions on one day count as one."""
        from goal_engine.services.frequency_validator import check_rolling_window

        result = check_rolling_window(
            _completions(datetime(2024, 1, 2, 7), datetime(2024, 1, 2, 19), datetime(2024, 1, 4, 7)),
            3,
            _period(date(2024, 1, 1), date(2024, 1, 7)),
        )

        assert result.per_bucket[-1].count == 2
        assert result.passed is False

    def test_failed_completions_ignored(self):
        """Test that completions that did not pass are not counted."""
        from goal_engine.models.frequency import CompletionRecord
        from goal_engine.services.frequency_validator import check_rolling_window

        completions = [
            CompletionRecord(timestamp=datetime(2024, 1, 2, 7)),
            CompletionRecord(timestamp=datetime(2024, 1, 3, 7), passed=False),
        ]
        result = check_rolling_window(completions, 1, _period(date(2024, 1, 1), date(2024, 1, 7)))

        assert result.per_bucket[-1].count == 1

    def test_timezone_shifts_local_date(self):
        """Test that aware timestamps are bucketed by local date."""
        from goal_engine.services.frequency_validator import check_rolling_window

        completions = _completions(
            datetime(2024, 1, 1, 8),
            datetime(2024, 1, 3, 8),
            datetime(2024, 1, 7, 16, tzinfo=timezone.utc),
        )
        period = _period(date(2024, 1, 1), date(2024, 1, 7))

        assert check_rolling_window(completions, 3, period, timezone="UTC").passed is True
        assert check_rolling_window(completions, 3, period, timezone="Asia/Seoul").passed is False

    def test_as_of_evaluates_one_window(self):
        """Test that as_of checks only the trailing window ending that day."""
        from goal_engine.services.frequency_validator import check_rolling_window

        completions = _completions(datetime(2024, 1, 1, 8), datetime(2024, 1, 3, 8), datetime(2024, 1, 5, 8))
        period = _period(date(2024, 1, 1), date(2024, 1, 31))

        weekly = check_rolling_window(completions, 3, period, as_of=date(2024, 1, 7))
        assert weekly.passed is True
        assert len(weekly.per_bucket) == 1

        early = check_rolling_window(completions, 3, period, as_of=date(2024, 1, 3))
        assert early.passed is False
        assert early.per_bucket[0].bucket_start == date(2024, 1, 1)
        assert early.per_bucket[0].days == 3

    def test_window_days(self):
        """Test a custom window length."""
        from goal_engine.services.frequency_validator import check_rolling_window

        completions = _completions(datetime(2024, 1, 1, 8), datetime(2024, 1, 3, 8))

        result = check_rolling_window(completions, 2, _period(date(2024, 1, 1), date(2024, 1, 3)), window_days=3)

        assert result.passed is True
        assert result.per_bucket[-1].complete is True


class TestMinimumFrequency:
    """Tests for checking a specification against a frequency rule."""

    def test_schedule_spec_with_count_rule(self, schedule_payload):
        """Test a schedule carrying its own count rule."""
        from goal_engine.models.goal_spec import ScheduleGoalSpec
        from goal_engine.services.frequency_validator import check_minimum_frequency

        schedule_payload["schedule"]["countRule"] = {"operator": ">=", "count": 4, "unit": "per_week"}
        spec = ScheduleGoalSpec.model_validate(schedule_payload)

        result = check_minimum_frequency(spec)
        assert result.failure_summary == "week of 2024-01-08: 3 < 4; week of 2024-01-15: 3 < 4"

        schedule_payload["schedule"]["overrides"] = [
            {"kind": "add", "date": "2024-01-11", "time": "07:00"},
            {"kind": "add", "date": "2024-01-18", "time": "07:00"},
        ]
        spec = ScheduleGoalSpec.model_validate(schedule_payload)
        assert check_minimum_frequency(spec).passed is True

    def test_confirmed_occurrences_take_precedence(self, schedule_payload):
        """Test that a confirmed list is checked instead of the rules."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.models.goal_spec import ScheduleGoalSpec
        from goal_engine.services.frequency_validator import check_minimum_frequency

        schedule_payload["confirmed"] = True
        schedule_payload["schedule"]["occurrences"] = [
            {"date": "2024-01-08", "time": "07:00"},
            {"date": "2024-01-15", "time": "07:00"},
        ]
        spec = ScheduleGoalSpec.model_validate(schedule_payload)

        result = check_minimum_frequency(spec, CountRule(count=2))
        assert [b.count for b in result.per_bucket] == [1, 1, 0]

    def test_no_rule_passes(self, schedule_payload, frequency_payload, milestone_payload):
        """Test that nothing to enforce is a pass."""
        from goal_engine.models.goal_spec import FrequencyGoalSpec, MilestoneGoalSpec, ScheduleGoalSpec
        from goal_engine.services.frequency_validator import check_minimum_frequency

        assert check_minimum_frequency(ScheduleGoalSpec.model_validate(schedule_payload)).passed is True
        assert check_minimum_frequency(FrequencyGoalSpec.model_validate(frequency_payload)).passed is True
        assert check_minimum_frequency(MilestoneGoalSpec.model_validate(milestone_payload)).passed is True

    def test_frequency_spec_uses_declared_target(self, frequency_payload):
        """Test a frequency goal against a stricter rule."""
        from goal_engine.models.frequency import CountRule
        from goal_engine.models.goal_spec import FrequencyGoalSpec
        from goal_engine.services.frequency_validator import check_minimum_frequency

        spec = FrequencyGoalSpec.model_validate(frequency_payload)

        assert check_minimum_frequency(spec, CountRule(count=3)).passed is True
        assert check_minimum_frequency(spec, CountRule(count=5)).passed is False
