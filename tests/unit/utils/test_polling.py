"""Tests for the bounded polling primitive."""

import pytest

from docintel.utils.polling import poll_until


class TestPollUntil:
    """Tests for poll_until."""

    @pytest.mark.asyncio
    async def test_returns_first_truthy_value(self, clock):
        """Polling stops as soon as the predicate holds."""
        answers = iter([None, [], ["custom-documents/a.json"]])

        async def predicate():
            return next(answers)

        result = await poll_until(predicate, interval=2.0, deadline=30.0, sleep=clock.sleep, clock=clock)

        assert result.satisfied is True
        assert result.value == ["custom-documents/a.json"]
        assert result.attempts == 3
        assert clock.sleeps == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_deadline_is_not_an_error(self, clock):
        """Running out of time reports satisfied=False instead of raising."""

        async def predicate():
            return False

        result = await poll_until(predicate, interval=2.0, deadline=5.0, sleep=clock.sleep, clock=clock)

        assert result.satisfied is False
        # 0s, 2s, 4s, then a final check at the 5s deadline
        assert result.attempts == 4
        assert sum(clock.sleeps) == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_predicate_errors_count_as_not_ready(self, clock):
        """An exception from the predicate does not abort polling."""
        calls = {"count": 0}

        async def predicate():
            calls["count"] += 1
            if calls["count"] == 1:
                raise RuntimeError("listing unavailable")
            return True

        result = await poll_until(predicate, interval=1.0, deadline=10.0, sleep=clock.sleep, clock=clock)

        assert result.satisfied is True
        assert result.attempts == 2
