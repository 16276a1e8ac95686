"""
Offline research agents.

Stand in for search and community lookups with deterministic results keyed
on the generated queries.
"""

from typing import Any, Dict

from aeo_orchestrator import AgentRunContext, agent_task


@agent_task("tavily-research", description="Search results per query")
async def research_queries(ctx: AgentRunContext) -> Dict[str, Any]:
    """Collect search results for each target query."""
    queries = ctx.require_result("query-generation")["queries"]
    results = [
        {
            "query": query,
            "sources": [f"https://{ctx.domain}/answers/{i}", f"https://wiki.example/{i}"],
            "citesTarget": i % 2 == 0,
        }
        for i, query in enumerate(queries)
    ]
    return {"results": results, "queryCount": len(queries)}


@agent_task("community-signals", description="Community discussion signals")
async def collect_community_signals(ctx: AgentRunContext) -> Dict[str, Any]:
    """Count community threads mentioning the topic."""
    topic = ctx.require_result("query-generation")["topic"]
    threads = [f"r/{word}" for word in topic.split()]
    return {"threads": threads, "mentions": 3 * len(threads)}
