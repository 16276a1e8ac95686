"""
Offline output agents.
"""

from typing import Any, Dict

from aeo_orchestrator import AgentRunContext, agent_task


@agent_task("recommendations", description="Prioritized recommendations")
def recommend(ctx: AgentRunContext) -> Dict[str, Any]:
    """Turn content gaps into recommendations ranked by score impact."""
    score = ctx.require_result("visibility-scoring")["score"]
    gaps = ctx.require_result("content-comparison")["gaps"]
    priority = "high" if score < 50 else "medium"
    return {
        "recommendations": [{"action": f"Add a {gap}", "priority": priority} for gap in gaps],
        "score": score,
    }


@agent_task("cursor-prompt", description="Implementation prompt for the recommendations")
def build_cursor_prompt(ctx: AgentRunContext) -> Dict[str, Any]:
    """Render the recommendations as an editing prompt."""
    recommendations = ctx.require_result("recommendations")["recommendations"]
    lines = [f"- {r['action']} ({r['priority']} priority)" for r in recommendations]
    return {"prompt": f"Update {ctx.target_url}:\n" + "\n".join(lines)}


@agent_task("report-generator", description="Final AEO report")
def generate_report(ctx: AgentRunContext) -> Dict[str, Any]:
    """Bundle the score, recommendations and prompt into one report."""
    recommendations = ctx.require_result("recommendations")
    return {
        "domain": ctx.domain,
        "url": ctx.target_url,
        "score": recommendations["score"],
        "recommendations": recommendations["recommendations"],
        "prompt": ctx.require_result("cursor-prompt")["prompt"],
    }
