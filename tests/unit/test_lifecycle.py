"""Unit tests for generation tracking and shared credential acquisition."""

from __future__ import annotations

import asyncio

import pytest

from strava_trails.errors import AuthError, PageFetchError, StaleGenerationDiscard
from strava_trails.services.credentials import StaticCredentialProvider
from strava_trails.services.lifecycle import RequestLifecycleManager


class SlowCredentials:
    """Credential provider whose acquisition blocks until released."""

    def __init__(self, token: str = "tok") -> None:
        self.token = token
        self.calls = 0
        self.release = asyncio.Event()
        self.invalidated: list[str] = []

    async def acquire(self) -> str:
        self.calls += 1
        await self.release.wait()
        return self.token

    def invalidate(self, token: str) -> None:
        self.invalidated.append(token)


@pytest.mark.ai_generated
class TestGenerations:
    """Tests for generation minting and commits."""

    def test_begin_generation_increments(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["t"]))

        assert manager.active_generation == 0
        assert manager.begin_generation() == 1
        assert manager.begin_generation() == 2
        assert manager.is_current(2)
        assert not manager.is_current(1)

    def test_begin_generation_cancels_older_handles(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["t"]))
        generation = manager.begin_generation()
        canceled: list[str] = []
        manager.register_handle(generation, lambda: canceled.append("a"))
        manager.register_handle(generation, lambda: canceled.append("b"))
        assert manager.pending_count(generation) == 2

        manager.begin_generation()

        assert canceled == ["a", "b"]
        assert manager.pending_count() == 0

    def test_register_stale_handle_cancels_immediately(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["t"]))
        manager.begin_generation()
        manager.begin_generation()
        canceled: list[int] = []

        manager.register_handle(1, lambda: canceled.append(1))

        assert canceled == [1]
        assert manager.pending_count() == 0

    def test_commit_if_current(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["t"]))
        old = manager.begin_generation()
        new = manager.begin_generation()
        committed: list[int] = []

        assert not manager.commit_if_current(old, lambda: committed.append(old))
        assert manager.commit_if_current(new, lambda: committed.append(new))
        assert committed == [new]


@pytest.mark.ai_generated
class TestTrack:
    """Tests for RequestLifecycleManager.track."""

    async def test_returns_result_for_current_generation(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["t"]))
        generation = manager.begin_generation()

        async def work() -> int:
            return 7

        assert await manager.track(generation, work()) == 7
        assert manager.pending_count() == 0

    async def test_superseded_operation_is_canceled(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["t"]))
        generation = manager.begin_generation()
        started = asyncio.Event()

        async def work() -> int:
            started.set()
            await asyncio.sleep(10)
            return 1

        task = asyncio.create_task(manager.track(generation, work()))
        await started.wait()
        manager.begin_generation()

        with pytest.raises(StaleGenerationDiscard):
            await task

    async def test_result_arriving_after_new_generation_is_discarded(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["t"]))
        generation = manager.begin_generation()

        async def work() -> int:
            manager.begin_generation()
            return 1

        with pytest.raises(StaleGenerationDiscard):
            await manager.track(generation, work())

    async def test_error_of_current_generation_propagates(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["t"]))
        generation = manager.begin_generation()

        async def work() -> int:
            raise PageFetchError("HTTP 404")

        with pytest.raises(PageFetchError):
            await manager.track(generation, work())

    async def test_error_of_stale_generation_is_discarded(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["t"]))
        generation = manager.begin_generation()

        async def work() -> int:
            manager.begin_generation()
            raise PageFetchError("late failure")

        with pytest.raises(StaleGenerationDiscard):
            await manager.track(generation, work())


@pytest.mark.ai_generated
class TestAcquireToken:
    """Tests for shared credential acquisition."""

    async def test_concurrent_callers_share_one_fetch(self) -> None:
        credentials = SlowCredentials()
        manager = RequestLifecycleManager(credentials)
        generation = manager.begin_generation()

        waiters = [asyncio.create_task(manager.acquire_token(generation)) for _ in range(3)]
        await asyncio.sleep(0)
        credentials.release.set()
        tokens = await asyncio.gather(*waiters)

        assert tokens == ["tok", "tok", "tok"]
        assert credentials.calls == 1

    async def test_token_is_cached(self) -> None:
        credentials = SlowCredentials()
        credentials.release.set()
        manager = RequestLifecycleManager(credentials)
        generation = manager.begin_generation()

        await manager.acquire_token(generation)
        await manager.acquire_token(generation)

        assert credentials.calls == 1

    async def test_invalidate_forces_new_fetch(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider(["first", "second"]))
        generation = manager.begin_generation()

        assert await manager.acquire_token(generation) == "first"
        manager.invalidate_token("first")

        assert await manager.acquire_token(generation) == "second"

    async def test_pending_fetch_canceled_by_new_generation(self) -> None:
        credentials = SlowCredentials()
        manager = RequestLifecycleManager(credentials)
        old = manager.begin_generation()

        waiter = asyncio.create_task(manager.acquire_token(old))
        await asyncio.sleep(0)
        new = manager.begin_generation()

        with pytest.raises(StaleGenerationDiscard):
            await waiter

        credentials.release.set()
        assert await manager.acquire_token(new) == "tok"

    async def test_exhausted_credentials(self) -> None:
        manager = RequestLifecycleManager(StaticCredentialProvider([]))
        generation = manager.begin_generation()

        with pytest.raises(AuthError, match="No Strava access token"):
            await manager.acquire_token(generation)
