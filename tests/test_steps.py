"""
Mutation Pipeline Tests - 다단계 변경 테스트
"""
import pytest

from app.club.steps import MutationPipeline, StepKind


def recorder(log, name, fail=False):
    async def action():
        log.append(name)
        if fail:
            raise RuntimeError(f"{name} failed")
    return action


@pytest.mark.asyncio
class TestMutationPipeline:
    """critical / best_effort 단계"""

    async def test_runs_in_order(self):
        log = []
        pipeline = (
            MutationPipeline("order")
            .critical("a", recorder(log, "a"))
            .best_effort("b", recorder(log, "b"))
            .critical("c", recorder(log, "c"))
        )

        warnings = await pipeline.run()

        assert log == ["a", "b", "c"]
        assert warnings == []

    async def test_best_effort_failure_continues(self):
        log = []
        pipeline = (
            MutationPipeline("best effort")
            .best_effort("cleanup", recorder(log, "cleanup", fail=True))
            .critical("main", recorder(log, "main"))
        )

        warnings = await pipeline.run()

        assert log == ["cleanup", "main"]
        assert len(warnings) == 1
        assert warnings[0].step == "cleanup"
        assert "cleanup failed" in warnings[0].error
        assert warnings[0].to_dict() == {"step": "cleanup", "error": "cleanup failed"}

    async def test_critical_failure_aborts(self):
        log = []
        pipeline = (
            MutationPipeline("critical")
            .critical("first", recorder(log, "first"))
            .critical("boom", recorder(log, "boom", fail=True))
            .best_effort("never", recorder(log, "never"))
        )

        with pytest.raises(RuntimeError, match="boom failed"):
            await pipeline.run()

        assert log == ["first", "boom"]

    async def test_step_kinds(self):
        pipeline = MutationPipeline("kinds").critical("a", recorder([], "a")).best_effort("b", recorder([], "b"))
        assert [s.kind for s in pipeline.steps] == [StepKind.critical, StepKind.best_effort]
