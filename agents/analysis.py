"""
Offline analysis agents.
"""

from typing import Any, Dict

from aeo_orchestrator import AgentRunContext, agent_task


@agent_task("citation-analysis", description="How often the target is cited")
def analyze_citations(ctx: AgentRunContext) -> Dict[str, Any]:
    """Measure the share of research results that cite the target."""
    results = ctx.require_result("tavily-research")["results"]
    cited = sum(1 for r in results if r["citesTarget"])
    rate = cited / len(results) if results else 0.0
    return {"citedQueries": cited, "totalQueries": len(results), "citationRate": rate}


@agent_task("content-comparison", description="Compare with competitor content")
def compare_content(ctx: AgentRunContext) -> Dict[str, Any]:
    """Compare the page's entities with the competitor set."""
    page = ctx.require_result("page-analysis")
    competitors = ctx.require_result("competitor-discovery")["competitors"]
    return {
        "entityCoverage": len(page["entities"]),
        "competitorsCompared": len(competitors),
        "gaps": [f"{page['topic']} comparison table", f"{page['topic']} FAQ"],
    }


@agent_task("visibility-scoring", description="Overall AI visibility score")
def score_visibility(ctx: AgentRunContext) -> Dict[str, Any]:
    """Combine citation rate and content gaps into a 0-100 score."""
    citations = ctx.require_result("citation-analysis")
    comparison = ctx.require_result("content-comparison")
    score = 100 * citations["citationRate"] - 5 * len(comparison["gaps"])
    return {"score": max(0.0, min(100.0, round(score, 1)))}
