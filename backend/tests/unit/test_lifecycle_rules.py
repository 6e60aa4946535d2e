"""Tests for session transitions and progress arithmetic."""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import IllegalStateTransitionError, ValidationError
from app.services.progress_service import derive_status, percent_of
from app.services.session_service import can_transition, check_transition, check_window


class TestTransitions:

    @pytest.mark.parametrize(
        "current,target",
        [
            ("SCHEDULED", "IN_PROGRESS"),
            ("SCHEDULED", "CANCELLED"),
            ("IN_PROGRESS", "ANALYZING"),
            ("IN_PROGRESS", "COMPLETED"),
            ("IN_PROGRESS", "CANCELLED"),
            ("ANALYZING", "COMPLETED"),
            ("ANALYZING", "CANCELLED"),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)
        check_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("SCHEDULED", "COMPLETED"),
            ("IN_PROGRESS", "SCHEDULED"),
            ("COMPLETED", "IN_PROGRESS"),
            ("CANCELLED", "SCHEDULED"),
            ("ANALYZING", "IN_PROGRESS"),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(IllegalStateTransitionError) as exc:
            check_transition(current, target)
        assert exc.value.details == {"from": current, "to": target}

    def test_terminal_states_have_no_exit(self):
        for target in ("SCHEDULED", "IN_PROGRESS", "ANALYZING"):
            assert not can_transition("COMPLETED", target)
            assert not can_transition("CANCELLED", target)

    def test_force_overrides_table(self):
        check_transition("COMPLETED", "IN_PROGRESS", force=True)

    def test_same_state_is_noop(self):
        check_transition("COMPLETED", "COMPLETED")


class TestWindow:

    def test_end_after_start(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        check_window(start, start + timedelta(days=1))

    def test_end_equal_to_start(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(ValidationError):
            check_window(start, start)


class TestProgressArithmetic:

    @pytest.mark.parametrize(
        "total,answered,status",
        [
            (0, 0, "NO_QUESTIONS"),
            (4, 0, "NOT_STARTED"),
            (4, 1, "IN_PROGRESS"),
            (4, 4, "COMPLETED"),
            (4, 5, "COMPLETED"),
        ],
    )
    def test_status(self, total, answered, status):
        assert derive_status(total, answered) == status

    def test_percent_rounds_to_integer(self):
        assert percent_of(3, 1) == 33
        assert percent_of(3, 2) == 67
        assert percent_of(4, 4) == 100

    def test_percent_without_questions(self):
        assert percent_of(0, 0) == 0
