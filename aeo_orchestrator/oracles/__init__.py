"""
Oracles consulted by the orchestration core.
"""

from aeo_orchestrator.oracles.base import (
    PlanningOracle,
    ResultReasoner,
    SummarizationOracle,
)
from aeo_orchestrator.oracles.ollama import (
    OllamaPlanningOracle,
    OllamaResultReasoner,
    OllamaSummarizationOracle,
)
from aeo_orchestrator.oracles.static import (
    DEFAULT_AEO_PLAN,
    ContinueReasoner,
    HeuristicSummarizationOracle,
    StaticPlanningOracle,
)

__all__ = [
    "PlanningOracle",
    "SummarizationOracle",
    "ResultReasoner",
    "OllamaPlanningOracle",
    "OllamaSummarizationOracle",
    "OllamaResultReasoner",
    "DEFAULT_AEO_PLAN",
    "StaticPlanningOracle",
    "HeuristicSummarizationOracle",
    "ContinueReasoner",
]
