"""
AI Layer - 决策子系统

Modules:
    config: 难度档位与权重配置
    context: 决策上下文
    probability: 概率估计
    position: 局面评估
    knowledge: 历史经验
    tactics: 战术适配器
    stores: 外部存储接口
    endgame: 残局求解
    policies: 各难度档位策略
    engine: 决策引擎
"""
from .config import (
    Difficulty,
    TierConfig,
    DEFAULT_TIERS,
    CardValueWeights,
    PositionWeights,
    ExpertWeights,
    EndgameConfig,
    TacticConfig,
    KnowledgeConfig,
    EngineConfig,
)

from .context import DecisionContext

from .probability import ProbabilityEstimator

from .position import (
    PositionEvaluator,
    card_strength,
    evaluate_card,
)

from .knowledge import (
    KnowledgeRecord,
    KnowledgeBase,
)

from .tactics import (
    ScenarioFilter,
    TacticAction,
    Tactic,
    TacticDecision,
    TacticAdapter,
    similarity,
)

from .stores import (
    ExternalStoreUnavailable,
    call_with_retry,
    TacticStore,
    KnowledgeStore,
    InMemoryTacticStore,
    InMemoryKnowledgeStore,
    JsonFileTacticStore,
    JsonFileKnowledgeStore,
)

from .endgame import EndgameSolver

from .policies import (
    Policy,
    EasyPolicy,
    MediumPolicy,
    HardPolicy,
    ExpertPolicy,
    POLICIES,
)

from .engine import (
    DecisionEngine,
    ai_decide,
)

__all__ = [
    # config
    "Difficulty",
    "TierConfig",
    "DEFAULT_TIERS",
    "CardValueWeights",
    "PositionWeights",
    "ExpertWeights",
    "EndgameConfig",
    "TacticConfig",
    "KnowledgeConfig",
    "EngineConfig",
    # context
    "DecisionContext",
    # probability
    "ProbabilityEstimator",
    # position
    "PositionEvaluator",
    "card_strength",
    "evaluate_card",
    # knowledge
    "KnowledgeRecord",
    "KnowledgeBase",
    # tactics
    "ScenarioFilter",
    "TacticAction",
    "Tactic",
    "TacticDecision",
    "TacticAdapter",
    "similarity",
    # stores
    "ExternalStoreUnavailable",
    "call_with_retry",
    "TacticStore",
    "KnowledgeStore",
    "InMemoryTacticStore",
    "InMemoryKnowledgeStore",
    "JsonFileTacticStore",
    "JsonFileKnowledgeStore",
    # endgame
    "EndgameSolver",
    # policies
    "Policy",
    "EasyPolicy",
    "MediumPolicy",
    "HardPolicy",
    "ExpertPolicy",
    "POLICIES",
    # engine
    "DecisionEngine",
    "ai_decide",
]
