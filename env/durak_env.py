"""
杜拉克 Gymnasium 环境

遵循标准 Gymnasium API；智能体控制一个玩家，其余玩家由 DecisionEngine 驱动
"""
from typing import Dict, Any, Tuple, Optional, List, Sequence, Union
import random
import numpy as np

import gymnasium as gym
from gymnasium import spaces

from ai.config import Difficulty, EngineConfig
from ai.engine import DecisionEngine
from ai.knowledge import KnowledgeRecord
from ai.tactics import Tactic
from core.cards import Card, DECK_SIZE, SUITS, cards_to_str
from core.state import MatchState, new_match

from .observation import ObservationBuilder, MAX_PLAYERS, NUM_ACTIONS, get_action_encoder
from .reward import RewardCalculator, RewardConfig, RewardType


class DurakEnv(gym.Env):
    """
    杜拉克 Gymnasium 环境

    API:
    - reset() -> observation, info
    - step(action) -> observation, reward, terminated, truncated, info

    动作: 0-35 为牌的索引，36 为 过 (攻击) / 接牌 (防守)
    """

    metadata = {
        "render_modes": ["human", "ansi"],
        "name": "Durak-v1",
    }

    def __init__(
        self,
        render_mode: Optional[str] = None,
        player_count: int = 2,
        agent_player: int = 0,
        opponent: Union[str, Difficulty] = "medium",
        reward_type: str = "sparse",
        max_steps: int = 1000,
        seed: Optional[int] = None,
        engine_config: Optional[EngineConfig] = None,
        tactics: Sequence[Tactic] = (),
        knowledge: Sequence[KnowledgeRecord] = (),
    ):
        """
        Args:
            render_mode: 渲染模式 ("human", "ansi", None)
            player_count: 玩家数 (2-5)
            agent_player: 智能体控制的玩家
            opponent: 对手难度
            reward_type: 奖励类型 ("sparse", "shaped")
            max_steps: 对局步数上限，超过后截断
            seed: 随机种子
        """
        super().__init__()

        if not 0 <= agent_player < player_count:
            raise ValueError(f"agent_player must be in [0, {player_count}), got {agent_player}")

        self.render_mode = render_mode
        self.player_count = player_count
        self.agent_player = agent_player
        self.opponent = Difficulty.parse(opponent)
        self.max_steps = max_steps
        self._seed = seed

        self._engine_config = engine_config
        self._tactics = list(tactics)
        self._knowledge = list(knowledge)

        self._obs_builder = ObservationBuilder()
        self._reward_calculator = RewardCalculator(RewardConfig(reward_type=RewardType(reward_type)))
        self._action_encoder = get_action_encoder()

        self._rng = random.Random(seed)
        self._opponents: Dict[int, DecisionEngine] = {}
        self._state: Optional[MatchState] = None
        self._prev_state: Optional[MatchState] = None

        self._define_spaces()

    def _define_spaces(self):
        """定义观测和动作空间"""
        self.action_space = spaces.Discrete(NUM_ACTIONS)

        self.observation_space = spaces.Dict({
            "hand": spaces.Box(0, 1, shape=(DECK_SIZE,), dtype=np.float32),
            "board_attack": spaces.Box(0, 1, shape=(DECK_SIZE,), dtype=np.float32),
            "board_defense": spaces.Box(0, 1, shape=(DECK_SIZE,), dtype=np.float32),
            "discard": spaces.Box(0, 1, shape=(DECK_SIZE,), dtype=np.float32),
            "trump": spaces.Box(0, 1, shape=(len(SUITS),), dtype=np.float32),
            "trump_card": spaces.Box(0, 1, shape=(DECK_SIZE,), dtype=np.float32),
            "role": spaces.Box(0, 1, shape=(2,), dtype=np.float32),
            "cards_left": spaces.Box(0, 1, shape=(MAX_PLAYERS,), dtype=np.float32),
            "deck": spaces.Box(0, 1, shape=(1,), dtype=np.float32),
            "legal_mask": spaces.Box(0, 1, shape=(NUM_ACTIONS,), dtype=np.float32),
        })

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, np.ndarray], Dict[str, Any]]:
        """
        重置环境，并让对手行动到轮到智能体为止

        Returns:
            (observation, info) 元组
        """
        super().reset(seed=seed)

        if seed is not None:
            self._rng = random.Random(seed)

        self._state = new_match(self.player_count, rng=self._rng)
        self._prev_state = None
        self._opponents = {
            p: DecisionEngine(
                self.opponent,
                tactics=self._tactics,
                knowledge=self._knowledge,
                config=self._engine_config,
                rng=self._rng,
            )
            for p in range(self.player_count)
            if p != self.agent_player
        }

        self._state = self._advance_opponents(self._state)

        obs = self._build_observation()
        info = self._build_info()

        if self.render_mode == "human":
            self.render()

        return obs, info

    def step(
        self,
        action: Union[int, np.integer, Card, None],
    ) -> Tuple[Dict[str, np.ndarray], float, bool, bool, Dict[str, Any]]:
        """
        执行智能体动作，然后推进对手直到再次轮到智能体或对局结束

        Args:
            action: 动作索引、Card 或 None (过/接牌)

        Returns:
            (observation, reward, terminated, truncated, info) 元组
        """
        if self._state is None:
            raise RuntimeError("Environment not reset. Call reset() first.")
        if self._state.is_finished:
            raise RuntimeError("Match is finished. Call reset() first.")

        card = self._decode_action(action)

        if not self._state.is_legal(card):
            # 非法动作：给予惩罚并保持状态
            obs = self._build_observation()
            info = self._build_info()
            info["error"] = "Invalid action"
            return obs, -1.0, False, False, info

        self._prev_state = self._state
        after_agent = self._state.with_move(card)
        reward = self._reward_calculator.compute(after_agent, self._prev_state, self.agent_player)

        self._state = self._advance_opponents(after_agent)
        if self._state.is_finished and not after_agent.is_finished:
            reward += self._reward_calculator.compute(self._state, None, self.agent_player)

        terminated = self._state.is_finished
        truncated = not terminated and self._state.step_count >= self.max_steps

        obs = self._build_observation()
        info = self._build_info()

        if self.render_mode == "human":
            self.render()

        return obs, reward, terminated, truncated, info

    def _decode_action(self, action: Union[int, np.integer, Card, None]) -> Optional[Card]:
        if action is None or isinstance(action, Card):
            return action
        if isinstance(action, (int, np.integer)):
            return self._action_encoder.decode(int(action))
        raise ValueError(f"Invalid action type: {type(action)}")

    def _advance_opponents(self, state: MatchState) -> MatchState:
        """对手连续行动，直到轮到智能体、对局结束或达到步数上限"""
        while (
            not state.is_finished
            and state.current_player != self.agent_player
            and state.step_count < self.max_steps
        ):
            engine = self._opponents[state.current_player]
            state = state.with_move(engine.decide(state))
        return state

    def _build_observation(self) -> Dict[str, np.ndarray]:
        return self._obs_builder.build(self._state, self.agent_player).to_dict()

    def _build_info(self) -> Dict[str, Any]:
        info = {
            "current_player": self._state.current_player,
            "attacker": self._state.attacker,
            "defender": self._state.defender,
            "phase": self._state.phase.value,
            "step_count": self._state.step_count,
            "deck_remaining": self._state.deck_remaining,
        }

        if not self._state.is_finished:
            info["legal_action_mask"] = self._action_encoder.build_legal_mask(self._state)
            info["legal_action_indices"] = self._action_encoder.get_legal_action_indices(self._state)
        else:
            info["loser"] = self._state.loser
            info["is_draw"] = self._state.is_draw

        return info

    def render(self) -> Optional[str]:
        """渲染环境"""
        if self.render_mode == "ansi" or self.render_mode == "human":
            return self._render_text()
        return None

    def _render_text(self) -> str:
        """文本渲染"""
        state = self._state
        lines = []
        lines.append("=" * 50)
        lines.append(f"Phase: {state.phase.value}  Trump: {state.trump_suit.value}  Deck: {state.deck_remaining}")
        lines.append(f"Attacker: {state.attacker}  Defender: {state.defender}")

        for p, hand in enumerate(state.hands):
            marker = "*" if p == self.agent_player else " "
            lines.append(f"{marker}P{p}: {cards_to_str(hand)} ({len(hand)})")

        board = "  ".join(
            f"{entry.attack}/{entry.defense}" if entry.defense else f"{entry.attack}/-"
            for entry in state.board
        )
        lines.append(f"Board: {board}")

        if state.is_finished:
            lines.append(f"Loser: {state.loser}")

        lines.append("=" * 50)

        output = "\n".join(lines)
        if self.render_mode == "human":
            print(output)
        return output

    def close(self):
        """关闭环境"""
        pass

    @property
    def state(self) -> Optional[MatchState]:
        """获取当前状态 (用于调试)"""
        return self._state

    def get_legal_actions(self) -> List[int]:
        """当前合法动作索引"""
        if self._state is None or self._state.is_finished:
            return []
        return self._action_encoder.get_legal_action_indices(self._state)

    def sample_action(self) -> int:
        """随机采样一个合法动作"""
        legal = self.get_legal_actions()
        if not legal:
            return NUM_ACTIONS - 1
        return int(self.np_random.choice(legal))


def make_env(
    env_id: str = "Durak-v1",
    **kwargs
) -> DurakEnv:
    """
    工厂函数：创建环境

    Args:
        env_id: 环境 ID
        **kwargs: 环境参数
    """
    return DurakEnv(**kwargs)
