"""
奖励函数

支持:
- 终局奖励 (sparse)
- 过程奖励 (shaped): 出牌小奖励、接牌惩罚
"""
from dataclasses import dataclass
from typing import Dict, Optional
from enum import Enum

from core.state import MatchState
from core.table import board_cards


class RewardType(Enum):
    """奖励类型"""
    SPARSE = "sparse"      # 仅终局奖励
    SHAPED = "shaped"      # 过程奖励


@dataclass
class RewardConfig:
    """奖励配置"""
    reward_type: RewardType = RewardType.SPARSE
    win_reward: float = 1.0
    lose_reward: float = -1.0
    draw_reward: float = 0.0
    card_shed_bonus: float = 0.01   # 每打出一张牌
    take_penalty: float = 0.05      # 每接一张牌


def defender_took(prev_state: MatchState, state: MatchState) -> bool:
    """prev_state -> state 这一步是否为防守方接牌"""
    if not prev_state.board or state.board:
        return False
    hand = state.hands[prev_state.defender]
    return all(card in hand for card in board_cards(prev_state.board))


class RewardCalculator:
    """
    奖励计算器

    根据配置计算不同类型的奖励
    """

    def __init__(self, config: Optional[RewardConfig] = None):
        self.config = config or RewardConfig()

    def compute(
        self,
        state: MatchState,
        prev_state: Optional[MatchState] = None,
        player: int = 0,
    ) -> float:
        """
        计算奖励

        Args:
            state: 当前状态
            prev_state: 前一状态 (用于 shaped 奖励)
            player: 计算奖励的玩家视角

        Returns:
            奖励值
        """
        if state.is_finished:
            return self._terminal_reward(state, player)

        if self.config.reward_type == RewardType.SHAPED and prev_state is not None:
            return self._shaped_reward(state, prev_state, player)
        return 0.0

    def _terminal_reward(self, state: MatchState, player: int) -> float:
        """
        Returns:
            胜利 (不是杜拉克): +1, 失败: -1, 平局: 0
        """
        if state.loser is None:
            return self.config.draw_reward
        if state.loser == player:
            return self.config.lose_reward
        return self.config.win_reward

    def _shaped_reward(self, state: MatchState, prev_state: MatchState, player: int) -> float:
        reward = 0.0

        if defender_took(prev_state, state) and prev_state.defender == player:
            reward -= len(board_cards(prev_state.board)) * self.config.take_penalty
            return reward

        played = len(prev_state.hands[player]) - len(state.hands[player])
        if played > 0:
            reward += played * self.config.card_shed_bonus
        return reward


class MultiAgentReward:
    """为所有玩家同时计算奖励"""

    def __init__(self, config: Optional[RewardConfig] = None):
        self.calculator = RewardCalculator(config)

    def compute_all(
        self,
        state: MatchState,
        prev_state: Optional[MatchState] = None,
    ) -> Dict[int, float]:
        return {
            player: self.calculator.compute(state, prev_state, player)
            for player in range(state.player_count)
        }


def create_reward_calculator(
    reward_type: str = "sparse",
    **kwargs
) -> RewardCalculator:
    """
    工厂函数：创建奖励计算器

    Args:
        reward_type: 奖励类型 ("sparse", "shaped")
        **kwargs: 其他配置参数
    """
    config = RewardConfig(
        reward_type=RewardType(reward_type),
        **kwargs
    )
    return RewardCalculator(config)
