"""
Agent work functions package.

Place work function modules here. Functions decorated with @agent_task
are discovered by TaskRegistry.discover_from_directory and bound to the
agent id they name.

Example:
    # my_agent.py
    from aeo_orchestrator import AgentRunContext, agent_task

    @agent_task("page-analysis")
    def analyze(ctx: AgentRunContext) -> dict:
        return {"topic": ctx.domain}
"""
