"""Tests for work function registration."""

import textwrap

import pytest

from aeo_orchestrator.tasks import AgentRunContext, AgentTask, TaskRegistry, agent_task
from tests.helpers import make_store


def run_context(store, agent_id="a"):
    return AgentRunContext(
        agent_id=agent_id, job_id=store.job_id, tenant_id=store.tenant_id,
        domain=store.domain, target_url="https://example.com", model="m", store=store,
    )


class TestAgentTask:
    @pytest.mark.asyncio
    async def test_sync_function_runs_in_thread(self):
        task = AgentTask("a", lambda ctx: {"agent": ctx.agent_id})
        assert not task.is_async
        assert await task.invoke(run_context(make_store())) == {"agent": "a"}

    @pytest.mark.asyncio
    async def test_async_function_is_awaited(self):
        async def work(ctx):
            return ctx.domain

        task = AgentTask("a", work)
        assert task.is_async
        assert await task.invoke(run_context(make_store())) == "example.com"


class TestAgentRunContext:
    def test_require_result_raises_when_absent(self):
        with pytest.raises(RuntimeError, match="Run page-analysis first"):
            run_context(make_store()).require_result("page-analysis")

    def test_reads_seeded_artifacts(self):
        store = make_store()
        store.seed_artifact("pages", [{"url": "u"}])
        assert run_context(store).get_result("pages") == [{"url": "u"}]


class TestTaskRegistry:
    def test_decorated_functions_are_global(self):
        @agent_task("decorated-test-agent", description="From the decorator")
        def work(_ctx):
            return 1

        tasks = TaskRegistry()
        assert "decorated-test-agent" in tasks
        assert tasks.get("decorated-test-agent").description == "From the decorator"
        assert "decorated-test-agent" not in TaskRegistry(include_global=False)

    def test_register_uses_docstring(self):
        def work(_ctx):
            """Scores visibility."""

        tasks = TaskRegistry(include_global=False)
        tasks.register("visibility-scoring", work)
        assert tasks.list_tasks() == ["visibility-scoring"]
        assert tasks.get("visibility-scoring").description == "Scores visibility."

    def test_discover_from_directory(self, tmp_path):
        (tmp_path / "scoring_work.py").write_text(
            textwrap.dedent(
                """
                from aeo_orchestrator.tasks import agent_task

                @agent_task("discovered-test-agent")
                def score(ctx):
                    return {"score": 1}
                """
            ),
            encoding="utf-8",
        )
        (tmp_path / "_private.py").write_text("raise RuntimeError('skipped')\n", encoding="utf-8")
        tasks = TaskRegistry()

        assert tasks.discover_from_directory(tmp_path) == 1
        assert "discovered-test-agent" in tasks

    def test_missing_directory(self, tmp_path):
        assert TaskRegistry().discover_from_directory(tmp_path / "nope") == 0
