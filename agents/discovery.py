"""
Offline discovery agents.

Derive the page topic, target queries and competitor list from the target
URL and any crawled pages seeded into the context. No network access.
"""

from typing import Any, Dict, List
from urllib.parse import urlparse

from aeo_orchestrator import AgentRunContext, agent_task


def _path_terms(url: str) -> List[str]:
    path = urlparse(url).path
    terms = [t for t in path.replace("_", "-").replace("/", "-").split("-") if t]
    return terms or ["home"]


@agent_task("page-analysis", description="Extract topic, intent and entities")
def analyze_page(ctx: AgentRunContext) -> Dict[str, Any]:
    """Extract topic, intent and entities from the target page."""
    pages = ctx.get_result("pages") or []
    terms = _path_terms(ctx.target_url)
    topic = " ".join(terms)
    intent = "transactional" if {"pricing", "buy", "plans"} & set(terms) else "informational"
    return {
        "url": ctx.target_url,
        "topic": topic,
        "intent": intent,
        "entities": [ctx.domain] + terms,
        "pagesAnalyzed": len(pages),
    }


@agent_task("query-generation", description="Generate target queries")
def generate_queries(ctx: AgentRunContext) -> Dict[str, Any]:
    """Turn the page topic into questions the page should answer."""
    page = ctx.require_result("page-analysis")
    topic = page["topic"]
    templates = [
        "what is {t}",
        "best {t} tools",
        "how does {t} work",
        "{t} vs alternatives",
        "is {t} worth it",
    ]
    return {"queries": [t.format(t=topic) for t in templates], "topic": topic}


@agent_task("competitor-discovery", description="Identify competing domains")
def discover_competitors(ctx: AgentRunContext) -> Dict[str, Any]:
    """List competitor domains for the generated queries."""
    queries = ctx.require_result("query-generation")["queries"]
    stem = ctx.domain.split(".")[0]
    competitors = [f"{stem}-{suffix}.com" for suffix in ("hq", "labs", "io")]
    return {"competitors": competitors, "queriesUsed": len(queries)}
