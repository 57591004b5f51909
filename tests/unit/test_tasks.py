"""Tests for TaskSupervisor."""

import asyncio

from whalewatch.core.tasks import TaskSupervisor


async def _sleep_then(value: int, delay: float = 0.01) -> int:
    await asyncio.sleep(delay)
    return value


async def _boom() -> None:
    raise RuntimeError("boom")


class TestSpawn:
    async def test_task_runs_and_is_released(self) -> None:
        tasks = TaskSupervisor()
        task = tasks.spawn(_sleep_then(7), name="sleep")

        assert task is not None
        assert tasks.active_count == 1
        await tasks.join()

        assert task.result() == 7
        assert tasks.active_count == 0

    async def test_failure_does_not_propagate(self) -> None:
        tasks = TaskSupervisor()
        task = tasks.spawn(_boom(), name="boom")

        await tasks.join()

        assert task is not None
        assert isinstance(task.exception(), RuntimeError)
        assert tasks.active_count == 0

    async def test_join_waits_for_nested_spawns(self) -> None:
        tasks = TaskSupervisor()
        done: list[str] = []

        async def outer() -> None:
            await asyncio.sleep(0)
            tasks.spawn(inner(), name="inner")

        async def inner() -> None:
            await asyncio.sleep(0.01)
            done.append("inner")

        tasks.spawn(outer(), name="outer")
        await tasks.join()

        assert done == ["inner"]


class TestShutdown:
    async def test_cancels_outstanding(self) -> None:
        tasks = TaskSupervisor()
        task = tasks.spawn(_sleep_then(1, delay=10), name="slow")

        await tasks.shutdown()

        assert task is not None and task.cancelled()
        assert tasks.active_count == 0

    async def test_spawn_after_shutdown_is_dropped(self) -> None:
        tasks = TaskSupervisor()
        await tasks.shutdown()

        assert tasks.spawn(_sleep_then(1), name="late") is None
        assert tasks.active_count == 0
