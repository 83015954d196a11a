"""Tests for poll-until-condition waits."""

from __future__ import annotations

import asyncio
import time

import pytest

from storefront_qa.scenarios.errors import PollTimeoutError
from storefront_qa.ui.polling import poll_until, wait_for


class TestPollUntil:

    @pytest.mark.asyncio
    async def test_met_on_first_probe(self):
        async def condition():
            return True

        result = await poll_until(condition, timeout=1, interval=0.01)
        assert result.met is True
        assert result.attempts == 1

    @pytest.mark.asyncio
    async def test_met_after_several_probes(self):
        calls = 0

        async def condition():
            nonlocal calls
            calls += 1
            return calls >= 3

        result = await poll_until(condition, timeout=1, interval=0.01)
        assert result.met is True
        assert result.attempts == 3

    @pytest.mark.asyncio
    async def test_never_met_respects_budget(self):
        async def condition():
            return False

        start = time.monotonic()
        result = await poll_until(condition, timeout=0.1, interval=0.02)
        assert result.met is False
        assert result.attempts >= 2
        assert time.monotonic() - start < 1.0

    @pytest.mark.asyncio
    async def test_slow_probe_cut_off_at_budget(self):
        async def condition():
            await asyncio.sleep(10)
            return True

        start = time.monotonic()
        result = await poll_until(condition, timeout=0.1, interval=0.01)
        assert result.met is False
        assert result.attempts == 1
        assert time.monotonic() - start < 1.0

    @pytest.mark.asyncio
    async def test_probe_exception_propagates(self):
        async def condition():
            raise RuntimeError('page crashed')

        with pytest.raises(RuntimeError, match='page crashed'):
            await poll_until(condition, timeout=1, interval=0.01)

    @pytest.mark.asyncio
    async def test_invalid_budget(self):
        async def condition():
            return True

        with pytest.raises(ValueError, match='timeout'):
            await poll_until(condition, timeout=0)


class TestWaitFor:

    @pytest.mark.asyncio
    async def test_raises_poll_timeout(self):
        async def condition():
            return False

        with pytest.raises(PollTimeoutError) as exc_info:
            await wait_for(condition, timeout=0.05, interval=0.01, description='search results')
        assert isinstance(exc_info.value, TimeoutError)
        assert exc_info.value.description == 'search results'
        assert 'search results not met within 0.05s' in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_returns_result_when_met(self):
        async def condition():
            return True

        result = await wait_for(condition, timeout=1)
        assert result.met is True
