"""Unit tests for TaskSupervisor."""

from __future__ import annotations

import asyncio

from vigil.supervisor import TaskSupervisor


class TestTaskSupervisor:
    async def test_drain_waits_for_nested_work(self) -> None:
        supervisor = TaskSupervisor()
        done: list[str] = []

        async def _inner():
            await asyncio.sleep(0)
            done.append("inner")

        async def _outer():
            supervisor.spawn(_inner(), name="inner")
            done.append("outer")

        supervisor.spawn(_outer(), name="outer")
        await supervisor.drain()

        assert done == ["outer", "inner"]
        assert supervisor.pending == 0

    async def test_failing_task_does_not_propagate(self) -> None:
        supervisor = TaskSupervisor()

        async def _boom():
            raise RuntimeError("transport exploded")

        supervisor.spawn(_boom(), name="boom")
        await supervisor.drain()
        assert supervisor.pending == 0

    async def test_stop_cancels_stragglers_and_refuses_new_work(self) -> None:
        supervisor = TaskSupervisor()
        supervisor.spawn(asyncio.sleep(60), name="slow")

        await supervisor.stop(grace_seconds=0.01)

        assert supervisor.pending == 0

        async def _late():
            return None

        assert supervisor.spawn(_late(), name="late") is None
