"""
Environment Layer - Gymnasium 兼容环境

Modules:
    durak_env: 主环境类
    observation: 观测空间构建
    reward: 奖励函数
"""
from .durak_env import (
    DurakEnv,
    make_env,
)

from .observation import (
    Observation,
    ObservationBuilder,
    ActionEncoder,
    PASS_ACTION,
    NUM_ACTIONS,
    get_action_encoder,
)

from .reward import (
    RewardType,
    RewardConfig,
    RewardCalculator,
    MultiAgentReward,
    create_reward_calculator,
)

__all__ = [
    # env
    "DurakEnv",
    "make_env",
    # observation
    "Observation",
    "ObservationBuilder",
    "ActionEncoder",
    "PASS_ACTION",
    "NUM_ACTIONS",
    "get_action_encoder",
    # reward
    "RewardType",
    "RewardConfig",
    "RewardCalculator",
    "MultiAgentReward",
    "create_reward_calculator",
]
