"""
Tests for participant access evaluation (app.core.session_access).
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.core.session_access import (
    HTTP_GONE,
    HTTP_OK,
    HTTP_TOO_EARLY,
    AccessMessages,
    AccessOutcome,
    evaluate_access,
    format_countdown,
    format_time_remaining,
    get_minutes_until_start,
    get_time_remaining,
    is_session_active,
    is_session_expired,
)
from app.models.models import SessionStatus

START = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
END = START + timedelta(hours=2)


def make_window(status=SessionStatus.ACTIVE, allow_late_entry=False, **overrides):
    """Build a minimal object satisfying the SessionWindow protocol."""
    values = {
        "status": status,
        "start_time": START,
        "end_time": END,
        "allow_late_entry": allow_late_entry,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestEvaluateAccessRules:
    """Tests for the ordered access rules."""

    @pytest.mark.parametrize(
        "now",
        [START - timedelta(days=1), START, START + timedelta(minutes=30), END + timedelta(days=1)],
    )
    def test_cancelled_is_gone_at_any_time(self, now):
        """A cancelled session is never accessible and always answers 410."""
        result = evaluate_access(make_window(SessionStatus.CANCELLED), now)

        assert result.accessible is False
        assert result.response_code == HTTP_GONE
        assert result.outcome == AccessOutcome.CANCELLED
        assert result.message == AccessMessages.CANCELLED

    def test_draft_is_not_yet_active(self):
        """A draft inside its window still reports not yet active with 200."""
        result = evaluate_access(
            make_window(SessionStatus.DRAFT), START + timedelta(minutes=10)
        )

        assert result.accessible is False
        assert result.response_code == HTTP_OK
        assert result.outcome == AccessOutcome.NOT_YET_ACTIVE
        assert result.message == AccessMessages.NOT_YET_ACTIVE
        assert result.is_active is False
        assert result.is_expired is False
        assert result.time_remaining_minutes == 110

    def test_missing_status_is_treated_as_draft(self):
        """A session without a status behaves like a draft."""
        result = evaluate_access(make_window(status=None), START)

        assert result.outcome == AccessOutcome.NOT_YET_ACTIVE
        assert result.response_code == HTTP_OK

    def test_expired_status_is_gone(self):
        """An expired session answers 410 even while its window is open."""
        result = evaluate_access(
            make_window(SessionStatus.EXPIRED), START + timedelta(minutes=5)
        )

        assert result.accessible is False
        assert result.is_expired is True
        assert result.response_code == HTTP_GONE
        assert result.outcome == AccessOutcome.EXPIRED
        assert result.message == AccessMessages.EXPIRED

    def test_active_past_end_is_expired(self):
        """An active session past its end time is treated as expired."""
        result = evaluate_access(make_window(), END + timedelta(minutes=1))

        assert result.accessible is False
        assert result.is_expired is True
        assert result.is_active is False
        assert result.response_code == HTTP_GONE
        assert result.time_remaining_minutes == 0

    def test_active_before_start_is_too_early(self):
        """An active session before its start time answers 425 with a countdown."""
        result = evaluate_access(make_window(), START - timedelta(minutes=30))

        assert result.accessible is False
        assert result.response_code == HTTP_TOO_EARLY
        assert result.outcome == AccessOutcome.TOO_EARLY
        assert result.minutes_until_start == 30
        assert result.message == (
            "Test session will start in 30 minute(s). "
            "Please come back at the scheduled time."
        )

    def test_too_early_countdown_switches_to_hours_above_an_hour(self):
        """Countdowns over 60 minutes are expressed in whole hours."""
        result = evaluate_access(make_window(), START - timedelta(minutes=150))

        assert result.minutes_until_start == 150
        assert "2 hour(s)" in result.message

    def test_active_at_start_is_accessible(self):
        """The start boundary is inclusive."""
        result = evaluate_access(make_window(), START)

        assert result.accessible is True
        assert result.is_active is True
        assert result.response_code == HTTP_OK
        assert result.outcome == AccessOutcome.ACCESSIBLE
        assert result.time_remaining_minutes == 120
        assert result.message == "Test session is active. Time remaining: 2h 0m"

    def test_active_at_end_is_accessible_with_zero_minutes(self):
        """The end boundary is inclusive."""
        result = evaluate_access(make_window(), END)

        assert result.accessible is True
        assert result.is_active is True
        assert result.is_expired is False
        assert result.time_remaining_minutes == 0
        assert result.message == "Test session is active. Time remaining: 0 minutes"

    def test_active_mid_window_reports_hours_and_minutes(self):
        """Remaining time over an hour is shown as hours and minutes."""
        result = evaluate_access(make_window(), START + timedelta(minutes=35))

        assert result.time_remaining_minutes == 85
        assert result.message == "Test session is active. Time remaining: 1h 25m"

    def test_completed_is_unavailable(self):
        """Completed sessions fall through to the generic unavailable answer."""
        result = evaluate_access(
            make_window(SessionStatus.COMPLETED), START + timedelta(minutes=5)
        )

        assert result.accessible is False
        assert result.response_code == HTTP_OK
        assert result.outcome == AccessOutcome.UNAVAILABLE
        assert result.message == AccessMessages.UNAVAILABLE
        assert result.is_expired is False

    def test_unknown_status_is_unavailable(self):
        """An unrecognized status value is never accessible."""
        result = evaluate_access(make_window(status="archived"), START)

        assert result.accessible is False
        assert result.outcome == AccessOutcome.UNAVAILABLE

    @pytest.mark.parametrize("allow_late_entry", [False, True])
    def test_late_entry_never_reopens_a_closed_window(self, allow_late_entry):
        """Past end time, an active session is expired whatever the late-entry flag."""
        result = evaluate_access(
            make_window(allow_late_entry=allow_late_entry),
            END + timedelta(minutes=5),
        )

        assert result.accessible is False
        assert result.outcome == AccessOutcome.EXPIRED
        assert result.response_code == HTTP_GONE

    def test_string_status_is_accepted(self):
        """Raw string statuses are coerced to SessionStatus."""
        result = evaluate_access(make_window(status="active"), START)

        assert result.accessible is True

    def test_naive_now_is_taken_as_utc(self):
        """A naive evaluation time is interpreted as UTC."""
        naive = (START + timedelta(minutes=10)).replace(tzinfo=None)

        assert evaluate_access(make_window(), naive) == evaluate_access(
            make_window(), START + timedelta(minutes=10)
        )

    def test_evaluation_is_deterministic(self):
        """The same inputs always produce an equal result."""
        now = START + timedelta(minutes=42)

        assert evaluate_access(make_window(), now) == evaluate_access(
            make_window(), now
        )

    @pytest.mark.parametrize("status", list(SessionStatus))
    @pytest.mark.parametrize("offset_minutes", [-600, -61, -1, 0, 1, 119, 120, 121, 600])
    def test_time_remaining_is_never_negative(self, status, offset_minutes):
        """time_remaining_minutes is clamped at zero for every status and time."""
        result = evaluate_access(
            make_window(status), START + timedelta(minutes=offset_minutes)
        )

        assert result.time_remaining_minutes >= 0

    @pytest.mark.parametrize("status", list(SessionStatus))
    @pytest.mark.parametrize("offset_minutes", [-30, 0, 60, 120, 130])
    def test_response_code_matches_outcome(self, status, offset_minutes):
        """Accessible results are always 200; 410 and 425 are never accessible."""
        result = evaluate_access(
            make_window(status), START + timedelta(minutes=offset_minutes)
        )

        if result.accessible:
            assert result.response_code == HTTP_OK
        assert result.response_code in (HTTP_OK, HTTP_GONE, HTTP_TOO_EARLY)

    def test_to_dict_serializes_outcome(self):
        """to_dict returns plain values suitable for JSON."""
        data = evaluate_access(make_window(), START - timedelta(minutes=5)).to_dict()

        assert data["outcome"] == "too_early"
        assert data["minutes_until_start"] == 5
        assert data["response_code"] == HTTP_TOO_EARLY


class TestTimeHelpers:
    """Tests for the minute arithmetic helpers."""

    def test_time_remaining_floors_partial_minutes(self):
        """Partial minutes are floored."""
        assert get_time_remaining(END, END - timedelta(seconds=90)) == 1
        assert get_time_remaining(END, END - timedelta(seconds=30)) == 0

    def test_time_remaining_clamps_after_end(self):
        """Past the end, remaining time is zero rather than negative."""
        assert get_time_remaining(END, END + timedelta(hours=3)) == 0

    def test_minutes_until_start(self):
        """Minutes until start are floored and clamped."""
        assert get_minutes_until_start(START, START - timedelta(minutes=61)) == 61
        assert get_minutes_until_start(START, START + timedelta(minutes=1)) == 0

    def test_naive_datetimes_are_supported(self):
        """Naive values from SQLite compare as UTC."""
        naive_end = END.replace(tzinfo=None)

        assert get_time_remaining(naive_end, START) == 120

    def test_is_session_active_requires_active_status(self):
        """Window membership alone is not enough to be active."""
        assert is_session_active(make_window(), START) is True
        assert is_session_active(make_window(SessionStatus.DRAFT), START) is False

    def test_is_session_expired(self):
        """Expired status, or active past the end, counts as expired."""
        assert is_session_expired(make_window(SessionStatus.EXPIRED), START) is True
        assert is_session_expired(make_window(), END) is False
        assert is_session_expired(make_window(), END + timedelta(seconds=1)) is True
        assert (
            is_session_expired(make_window(SessionStatus.COMPLETED), END + timedelta(days=1))
            is False
        )


class TestMessageFormatting:
    """Tests for participant-facing message builders."""

    def test_countdown_at_exactly_one_hour_uses_minutes(self):
        """Exactly 60 minutes is still shown in minutes."""
        assert format_countdown(60).startswith("Test session will start in 60 minute(s).")

    def test_countdown_above_one_hour_uses_whole_hours(self):
        """61 minutes rounds down to 1 hour."""
        assert format_countdown(61).startswith("Test session will start in 1 hour(s).")

    def test_time_remaining_under_an_hour(self):
        """Under an hour, remaining time is shown in minutes."""
        assert format_time_remaining(45) == "Test session is active. Time remaining: 45 minutes"

    def test_time_remaining_over_an_hour(self):
        """Over an hour, remaining time is shown as hours and minutes."""
        assert format_time_remaining(125) == "Test session is active. Time remaining: 2h 5m"
