"""
Ollama-backed oracles.

Planning, summarization and reasoning calls go to an Ollama model with JSON
structured output. Transport and decoding failures are raised as
OracleCallFailedError so the orchestrator can fail the job with a typed error.
"""

# pylint: disable=too-many-arguments, too-many-positional-arguments

import json
import time
from typing import Any, Dict, List, Mapping, Optional

from ollama import AsyncClient, RequestError, ResponseError

from aeo_orchestrator.errors import OracleCallFailedError, OraclePlanInvalidError
from aeo_orchestrator.models import (
    AgentContext,
    AgentStatus,
    ExecutionPlan,
    ReasoningResult,
    SummaryResult,
)
from aeo_orchestrator.observability.logging import PipelineLogger, get_logger
from aeo_orchestrator.oracles.base import PlanningOracle, ResultReasoner, SummarizationOracle
from aeo_orchestrator.registry import AgentRegistry, default_agent_registry

SUMMARY_PREVIEW_CHARS = 4000
BRIEF_PREVIEW_CHARS = 2000

PLAN_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "phases": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "agents": {"type": "array", "items": {"type": "string"}},
                    "runInParallel": {"type": "boolean"},
                    "dependsOn": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["name", "agents", "runInParallel"],
            },
        },
        "estimatedDuration": {"type": "number"},
        "reasoning": {"type": "string"},
    },
    "required": ["phases", "estimatedDuration", "reasoning"],
}

SUMMARY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "keyFindings": {"type": "array", "items": {"type": "string"}},
        "metrics": {"type": "object", "additionalProperties": {"type": "number"}},
        "status": {"type": "string", "enum": ["completed", "partial", "failed"]},
        "nextSteps": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["summary"],
}

BRIEF_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {"summary": {"type": "string"}},
    "required": ["summary"],
}

REASONING_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "shouldContinue": {"type": "boolean"},
        "nextSteps": {"type": "array", "items": {"type": "string"}},
        "adjustments": {"type": "array", "items": {"type": "string"}},
        "insights": {"type": "array", "items": {"type": "string"}},
        "confidence": {"type": "number", "minimum": 0, "maximum": 100},
    },
    "required": ["shouldContinue", "nextSteps", "insights", "confidence"],
}


class OllamaOracle:
    """Shared chat plumbing for the Ollama-backed oracles."""

    name = "Ollama oracle"

    def __init__(
        self,
        model: str,
        client: Optional[AsyncClient] = None,
        host: Optional[str] = None,
        temperature: float = 0.0,
    ) -> None:
        """Initialize the oracle.

        Args:
            model: Ollama model name
            client: Client to use (created from ``host`` if not given)
            host: Ollama server URL
            temperature: Sampling temperature
        """
        self.model = model
        self.temperature = temperature
        self._client = client or AsyncClient(host=host)
        self._logger: PipelineLogger = get_logger(f"oracle.{self.name.lower().replace(' ', '_')}")

    async def _chat_json(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Send one chat request and decode the JSON reply.

        Raises:
            OracleCallFailedError: On transport errors or non-JSON output
        """
        start_time = time.perf_counter()
        try:
            response = await self._client.chat(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                format=dict(schema),
                options={"temperature": self.temperature},
                stream=False,
            )
        except (ResponseError, RequestError, ConnectionError) as e:
            self._logger.error(f"{self.name} call failed: {e}")
            raise OracleCallFailedError(self.name, e) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._logger.debug(f"{self.name} call completed", duration_ms=duration_ms)

        content = getattr(response.message, "content", "") or ""
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise OracleCallFailedError(self.name, e) from e
        if not isinstance(data, dict):
            raise OracleCallFailedError(
                self.name, ValueError("model reply is not a JSON object")
            )
        return data


class OllamaPlanningOracle(OllamaOracle, PlanningOracle):
    """Asks the model for an execution plan over the registry's agents."""

    name = "Plan Generator"

    def __init__(
        self,
        model: str,
        client: Optional[AsyncClient] = None,
        host: Optional[str] = None,
        temperature: float = 0.3,
        registry: Optional[AgentRegistry] = None,
    ) -> None:
        super().__init__(model, client=client, host=host, temperature=temperature)
        self._registry = registry or default_agent_registry

    def _system_prompt(self) -> str:
        categories: List[str] = []
        for category in ("discovery", "research", "analysis", "output"):
            ids = [
                a.id for a in self._registry.get_agents_by_category(category) if a.enabled
            ]
            if ids:
                categories.append(f"- {category.title()}: {', '.join(ids)}")

        disabled = [
            a for a in self._registry.list_agents() if not self._registry.is_enabled(a)
        ]
        rules = [
            f"- {agent_id} depends on {', '.join(sorted(deps))}"
            for agent_id in self._registry.list_agents(include_disabled=False)
            if (deps := self._registry.get_dependencies(agent_id))
        ]

        prompt = (
            "You are an expert orchestrator for an AEO (Answer Engine Optimization) "
            "analysis pipeline.\n\n"
            "Your task is to create an execution plan that determines:\n"
            "1. Which agents to run\n"
            "2. In what order (considering dependencies)\n"
            "3. Which agents can run in parallel\n"
            "4. Estimated duration\n\n"
            "Available agents (USE ONLY THESE):\n" + "\n".join(categories) + "\n\n"
        )
        if disabled:
            prompt += f"NOTE: Do NOT include these disabled agents: {', '.join(disabled)}\n\n"
        prompt += (
            "DEPENDENCY RULES (MUST FOLLOW):\n" + "\n".join(rules) + "\n\n"
            "An agent may only run after every agent it depends on, in an earlier "
            "phase or earlier in the same sequential phase. Agents that depend on "
            "each other must never share a parallel phase. Phase names must be unique."
        )
        return prompt

    async def propose(
        self,
        target_url: str,
        domain: str,
        context_digest: str,
    ) -> ExecutionPlan:
        user_prompt = (
            f"Create an execution plan for analyzing: {target_url} ({domain})\n\n"
            f"Current context:\n{context_digest}\n\n"
            "Generate a plan that:\n"
            "1. Skips agents that are already completed\n"
            "2. Runs agents in the correct dependency order\n"
            "3. Parallelizes agents when possible\n"
            "4. Estimates realistic duration"
        )
        data = await self._chat_json(self._system_prompt(), user_prompt, PLAN_SCHEMA)
        try:
            return ExecutionPlan.from_dict(data)
        except ValueError as e:
            raise OraclePlanInvalidError([str(e)]) from e


class OllamaSummarizationOracle(OllamaOracle, SummarizationOracle):
    """Summarizes agent results with the model."""

    name = "Summary Generator"

    async def summarize(self, agent_id: str, full_result: Any) -> SummaryResult:
        result_json = json.dumps(full_result, indent=2, default=str)
        preview = result_json[:SUMMARY_PREVIEW_CHARS]
        truncated = ""
        if len(result_json) > SUMMARY_PREVIEW_CHARS:
            truncated = (
                f"\n[Result truncated - showing first {SUMMARY_PREVIEW_CHARS} chars "
                f"of {len(result_json)} total]\n"
            )

        system_prompt = (
            "You are an expert at summarizing technical analysis results.\n"
            "Extract the most important information from agent results and create "
            "a concise summary.\n\n"
            "Focus on:\n"
            "- Key findings and insights\n"
            "- Important metrics and numbers\n"
            "- Overall status/success\n"
            "- What this means for next steps\n\n"
            "Be concise but informative."
        )
        user_prompt = (
            f'Summarize this agent result for agent "{agent_id}":\n\n{preview}\n'
            f"{truncated}\n"
            "Generate a structured summary with key findings, metrics, and status."
        )
        data = await self._chat_json(system_prompt, user_prompt, SUMMARY_SCHEMA)
        return SummaryResult.from_dict(data)

    async def brief_summarize(self, agent_id: str, full_result: Any) -> str:
        preview = json.dumps(full_result, indent=2, default=str)[:BRIEF_PREVIEW_CHARS]
        data = await self._chat_json(
            "Generate a very brief one-sentence summary of this agent result.",
            f"Agent: {agent_id}\nResult preview:\n{preview}",
            BRIEF_SCHEMA,
        )
        summary = data.get("summary")
        if not isinstance(summary, str) or not summary:
            raise OracleCallFailedError(self.name, ValueError("empty brief summary"))
        return summary


class OllamaResultReasoner(OllamaOracle, ResultReasoner):
    """Reviews intermediate results and decides whether to continue."""

    name = "Result Reasoner"

    def __init__(
        self,
        model: str,
        client: Optional[AsyncClient] = None,
        host: Optional[str] = None,
        temperature: float = 0.2,
    ) -> None:
        super().__init__(model, client=client, host=host, temperature=temperature)

    async def reason(self, context: AgentContext) -> ReasoningResult:
        system_prompt = (
            "You are an expert analyst reviewing intermediate results from an AEO "
            "analysis pipeline.\n\n"
            "Your task is to:\n"
            "1. Analyze the current state of the analysis\n"
            "2. Identify patterns and insights\n"
            "3. Determine if we should continue or adjust the plan\n"
            "4. Suggest next steps\n\n"
            "Be strategic and data-driven. Look for:\n"
            "- Quality of results so far\n"
            "- Missing critical information\n"
            "- Opportunities to optimize\n"
            "- Potential issues or blockers"
        )
        user_prompt = (
            f"Analyze these intermediate results:\n\n{build_results_summary(context)}\n\n"
            "Provide reasoning about:\n"
            "1. Should we continue with the current plan?\n"
            "2. What are the key insights so far?\n"
            "3. What adjustments (if any) should we make?\n"
            "4. What are the recommended next steps?\n"
            "5. How confident are we in the results so far?"
        )
        data = await self._chat_json(system_prompt, user_prompt, REASONING_SCHEMA)
        try:
            return ReasoningResult.from_dict(data)
        except ValueError as e:
            raise OracleCallFailedError(self.name, e) from e


def build_results_summary(context: AgentContext) -> str:
    """Render completed, failed and running agents for the reasoner prompt."""
    summaries = list(context.summaries.values())
    completed = [s for s in summaries if s.status is AgentStatus.COMPLETED]
    failed = [s for s in summaries if s.status is AgentStatus.FAILED]
    running = [s for s in summaries if s.status is AgentStatus.RUNNING]

    completed_text = "\n\n".join(
        f"**{s.agent_id}**:\n"
        f"- Summary: {s.summary}\n"
        f"- Key Findings: {', '.join(s.key_findings[:3])}\n"
        f"- Metrics: {', '.join(f'{k}={v}' for k, v in list(s.metrics.items())[:3])}"
        for s in completed
    )
    failed_text = "\n".join(f"- {s.agent_id}: {s.summary}" for s in failed)
    running_text = ", ".join(s.agent_id for s in running)

    return (
        f"Completed Agents ({len(completed)}):\n{completed_text or 'None'}\n\n"
        f"Failed Agents ({len(failed)}):\n{failed_text or 'None'}\n\n"
        f"Running Agents ({len(running)}):\n{running_text or 'None'}"
    )
