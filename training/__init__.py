"""
Training Layer - 对局后学习

Modules:
    config: 学习配置
    tactic_learner: 战术学习与经验记录
"""
from .config import LearningConfig
from .tactic_learner import (
    LearningReport,
    TacticLearner,
)

__all__ = [
    # config
    "LearningConfig",
    # tactic_learner
    "LearningReport",
    "TacticLearner",
]
