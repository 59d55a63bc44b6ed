"""
Tests for suspension levels.
"""

from datetime import UTC, datetime, timedelta

import pytest

from apps.access.suspension import SuspensionLevel, get_suspension_level, in_grace_period

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestSuspensionLevel:
    @pytest.mark.parametrize("status", ["active", "trialing"])
    def test_good_standing_is_not_suspended(self, status: str) -> None:
        assert get_suspension_level(status, None, NOW) == SuspensionLevel.NONE

    def test_past_due_inside_grace_period(self) -> None:
        grace_end = NOW + timedelta(days=3)

        assert in_grace_period("past_due", grace_end, NOW) is True
        assert get_suspension_level("past_due", grace_end, NOW) == SuspensionLevel.NONE

    def test_past_due_after_grace_period_is_read_only(self) -> None:
        grace_end = NOW - timedelta(seconds=1)

        assert in_grace_period("past_due", grace_end, NOW) is False
        assert get_suspension_level("past_due", grace_end, NOW) == SuspensionLevel.READ_ONLY

    def test_past_due_without_grace_period_is_read_only(self) -> None:
        assert get_suspension_level("past_due", None, NOW) == SuspensionLevel.READ_ONLY

    @pytest.mark.parametrize("status", ["canceled", "unpaid", "incomplete", "incomplete_expired", "", None])
    def test_everything_else_is_blocked(self, status: str | None) -> None:
        assert get_suspension_level(status, NOW + timedelta(days=1), NOW) == SuspensionLevel.BLOCKED

    def test_grace_period_only_applies_to_past_due(self) -> None:
        assert in_grace_period("canceled", NOW + timedelta(days=1), NOW) is False
