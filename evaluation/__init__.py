"""
Evaluation Layer - 评估框架

Modules:
    evaluator: 评估器和智能体
    arena: 对战竞技场
"""
from .evaluator import (
    EvalResult,
    Agent,
    RandomAgent,
    EngineAgent,
    make_tier_agents,
    Evaluator,
)
from .arena import (
    MoveRecord,
    MatchResult,
    TournamentResult,
    Arena,
    ParallelArena,
)

__all__ = [
    # evaluator
    "EvalResult",
    "Agent",
    "RandomAgent",
    "EngineAgent",
    "make_tier_agents",
    "Evaluator",
    # arena
    "MoveRecord",
    "MatchResult",
    "TournamentResult",
    "Arena",
    "ParallelArena",
]
