"""
Unit tests for the cooperative and worker-thread execution strategies.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from datacompare.core.comparator import (
    ComparisonCancelled,
    DataComparator,
    InvalidInput,
    compare,
)
from datacompare.core.execution import (
    ComparisonTask,
    ErrorMessage,
    ProgressMessage,
    ResultMessage,
    compare_async,
)


ROWS1 = [{"id": i, "v": i} for i in range(1, 21)]
ROWS2 = [{"id": i, "v": i if i % 5 else -1} for i in range(10, 31)]


class TestCompareAsync:

    def test_same_result_as_inline(self):
        inline = compare(ROWS1, ROWS2, ["id"], compare_columns=["v"])
        result = asyncio.run(compare_async(ROWS1, ROWS2, ["id"], compare_columns=["v"]))
        assert result == inline

    def test_reports_progress(self):
        events = []
        asyncio.run(compare_async(
            ROWS1, ROWS2, ["id"],
            on_progress=lambda p, s: events.append((p, s)),
            comparator=DataComparator(progress_interval=5),
        ))

        assert events[0] == (10, "Starting comparison...")
        assert events[-1] == (100, "Complete!")
        assert [p for p, _ in events] == sorted(p for p, _ in events)

    def test_yields_to_other_tasks(self):
        """Another coroutine gets to run while the comparison is in progress."""
        ticks = []

        async def ticker():
            for _ in range(3):
                ticks.append("tick")
                await asyncio.sleep(0)

        async def main():
            other = asyncio.ensure_future(ticker())
            result = await compare_async(ROWS1, ROWS2, ["id"])
            await other
            return result

        result = asyncio.run(main())
        assert ticks == ["tick"] * 3
        assert len(result.matches) == 11

    def test_invalid_input(self):
        with pytest.raises(InvalidInput):
            asyncio.run(compare_async(ROWS1, ROWS2, []))


class TestComparisonTask:

    def test_result_matches_inline(self):
        task = ComparisonTask(ROWS1, ROWS2, ["id"], compare_columns=["v"]).start()
        result = task.result(timeout=10)

        assert result == compare(ROWS1, ROWS2, ["id"], compare_columns=["v"])
        assert task.done
        assert not task._thread.is_alive()

    def test_messages_end_with_result(self):
        task = ComparisonTask(ROWS1, ROWS2, ["id"],
                              comparator=DataComparator(progress_interval=3)).start()
        messages = list(task.iter_messages(timeout=10))

        assert isinstance(messages[-1], ResultMessage)
        progress = messages[:-1]
        assert all(isinstance(m, ProgressMessage) for m in progress)
        assert progress[0] == ProgressMessage(10, "Starting comparison...")
        assert progress[-1] == ProgressMessage(100, "Complete!")
        assert messages[-1].result is task.result(timeout=1)

    def test_on_progress_called_on_worker(self):
        events = []
        task = ComparisonTask(ROWS1, ROWS2, ["id"],
                              on_progress=lambda p, s: events.append(p))
        task.start().result(timeout=10)
        assert events[0] == 10
        assert events[-1] == 100

    def test_invalid_input_raised_by_constructor(self):
        with pytest.raises(InvalidInput):
            ComparisonTask(ROWS1, ROWS2, [])

    def test_caller_rows_copied_before_start(self):
        rows1 = [{"id": 1, "v": "a"}]
        rows2 = [{"id": 1, "v": "a"}]
        task = ComparisonTask(rows1, rows2, ["id"], compare_columns=["v"])
        rows1[0]["v"] = "changed"

        result = task.start().result(timeout=10)
        assert len(result.matches) == 1
        assert result.matches[0]["v"] == "a"

    def test_cancel_posts_error(self):
        task = ComparisonTask(ROWS1, ROWS2, ["id"])

        def on_progress(percent, phase):
            if percent >= 30:
                task.cancel()

        task.on_progress = on_progress
        task.start()
        messages = list(task.iter_messages(timeout=10))

        assert isinstance(messages[-1], ErrorMessage)
        assert isinstance(messages[-1].error, ComparisonCancelled)
        with pytest.raises(ComparisonCancelled):
            task.result(timeout=1)

    def test_result_before_start(self):
        task = ComparisonTask(ROWS1, ROWS2, ["id"])
        with pytest.raises(RuntimeError):
            task.result(timeout=0)

    def test_start_twice(self):
        task = ComparisonTask(ROWS1, ROWS2, ["id"]).start()
        task.result(timeout=10)
        with pytest.raises(RuntimeError):
            task.start()

    def test_empty_dataset_posts_only_result(self):
        task = ComparisonTask([], ROWS2, ["id"]).start()
        messages = list(task.iter_messages(timeout=10))

        assert len(messages) == 1
        assert isinstance(messages[0], ResultMessage)
        assert messages[0].result.is_empty
