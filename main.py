#!/usr/bin/env python3
"""
AEO Orchestration Demo.

This script runs one AEO analysis job end to end:
1. Load pipeline configuration from .env / environment variables or YAML
2. Discover agent work functions from the agents/ directory
3. Plan the job (fixed default plan, or an Ollama model with --ollama)
4. Execute the phases, printing a line per completed phase

Usage:
    python main.py https://example.com/pricing
    python main.py https://example.com/pricing --ollama --config pipeline.yaml
"""
# pylint: disable=wrong-import-position

import argparse
import asyncio
import sys
import uuid
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

try:
    from dotenv import load_dotenv
except ImportError:
    print("Error: python-dotenv is required. Install with: pip install python-dotenv")
    sys.exit(1)

# Load environment variables
load_dotenv(override=True)

PROJECT_ROOT = Path(__file__).parent

from aeo_orchestrator import (
    AgentSummary,
    LocalBlobStore,
    Orchestrator,
    OrchestratorResult,
    PipelineConfig,
    PipelineError,
    TaskRegistry,
    configure_logging,
)
from aeo_orchestrator.oracles import (
    ContinueReasoner,
    HeuristicSummarizationOracle,
    StaticPlanningOracle,
)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Run an AEO analysis job.")
    parser.add_argument("url", nargs="?", help="URL to analyze")
    parser.add_argument("--tenant", default="demo", help="Tenant identifier")
    parser.add_argument("--config", type=Path, help="Pipeline config YAML file")
    parser.add_argument(
        "--ollama", action="store_true", help="Use Ollama for planning and reasoning"
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", help="Also write JSON logs to this file")
    return parser.parse_args(argv)


def print_phase(phase_name: str, summaries: Dict[str, AgentSummary]) -> None:
    """Print a one-line status per agent after each phase."""
    print(f"\n{'─' * 40}")
    print(f"Phase complete: {phase_name}")
    print(f"{'─' * 40}")
    for summary in summaries.values():
        print(f"  [{summary.status.value:>9}] {summary.agent_id}: {summary.summary}")


def print_result(result: OrchestratorResult) -> None:
    """Print the final job outcome."""
    print("\n" + "=" * 60)
    print(f"Job {result.job_id}: {result.state.value}")
    print("=" * 60)
    print(f"Phases executed: {', '.join(result.phases_executed)}")
    if result.stopped_early:
        print("Stopped early by the result reasoner")
    if result.failed_agents:
        print(f"Failed agents: {', '.join(result.failed_agents)}")
    for phase_name, insights in result.insights.items():
        for insight in insights:
            print(f"  {phase_name}: {insight}")
    if result.snapshot_ref:
        print(f"Context snapshot: {result.snapshot_ref}")


def build_orchestrator(
    args: argparse.Namespace, config: PipelineConfig, domain: str
) -> Orchestrator:
    """Create the orchestrator with offline or Ollama-backed oracles."""
    tasks = TaskRegistry()
    discovered = tasks.discover_from_directory(PROJECT_ROOT / "agents")
    print(f"Discovered {discovered} agent work functions")

    job_id = f"job-{uuid.uuid4().hex[:8]}"
    if args.ollama:
        return Orchestrator.with_ollama(
            job_id, args.tenant, domain, config=config, tasks=tasks
        )

    return Orchestrator(
        job_id=job_id,
        tenant_id=args.tenant,
        domain=domain,
        planning_oracle=StaticPlanningOracle(),
        summarizer=HeuristicSummarizationOracle(),
        reasoner=ContinueReasoner(),
        blob_store=LocalBlobStore(config.storage_dir),
        tasks=tasks,
        config=config,
    )


async def run(args: argparse.Namespace) -> OrchestratorResult:
    """Plan and execute one job."""
    config = PipelineConfig.from_yaml(args.config) if args.config else PipelineConfig.from_env()

    url = args.url or input("\nEnter a URL to analyze (or press Enter for default): ").strip()
    if not url:
        url = "https://example.com/crm-pricing"
    domain = urlparse(url).netloc or url

    orchestrator = build_orchestrator(args, config, domain)
    orchestrator.context.seed_artifact("pages", [{"url": url, "title": domain}])

    plan = await orchestrator.initialize(url)
    print(f"\nPlan: {' -> '.join(plan.phase_names)}")
    if plan.rationale:
        print(f"Rationale: {plan.rationale}")

    return await orchestrator.execute(on_phase_complete=print_phase)


def main() -> int:
    """Main entry point."""
    args = parse_args()
    configure_logging(level=args.log_level, log_file=args.log_file)

    print("=" * 60)
    print("AEO Orchestration Demo")
    print("=" * 60)

    try:
        result = asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        return 0
    except PipelineError as e:
        print(f"\nJob failed [{e.code}]: {e}")
        return 1
    except (ValueError, RuntimeError, OSError) as e:
        print(f"\nError: {e}")
        return 1

    print_result(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
