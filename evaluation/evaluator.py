"""
评估器

评估智能体 (对局中的一个座位) 的表现
"""
from typing import Callable, Dict, List, Optional, Sequence, Union
from dataclasses import dataclass, field
import logging
import random

from ai.config import Difficulty, EngineConfig
from ai.engine import DecisionEngine
from ai.knowledge import KnowledgeRecord
from ai.tactics import Tactic
from core.cards import Card
from core.state import MatchState

logger = logging.getLogger(__name__)


@dataclass
class EvalResult:
    """
    评估结果

    win: 对局正常结束且不是杜拉克
    """
    win_rate: float
    loss_rate: float
    draw_rate: float
    avg_reward: float
    avg_length: float
    games_played: int
    truncated: int = 0
    extra_stats: Dict[str, float] = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"EvalResult(win_rate={self.win_rate:.2%}, "
            f"loss_rate={self.loss_rate:.2%}, "
            f"avg_reward={self.avg_reward:.2f}, "
            f"games={self.games_played})"
        )


class Agent:
    """智能体基类"""

    def __init__(self, name: str = "agent"):
        self.name = name

    def act(self, state: MatchState) -> Optional[Card]:
        """为当前行动玩家选择动作 (None 为 过/接牌)"""
        raise NotImplementedError

    def reset(self):
        """重置状态"""
        pass


class RandomAgent(Agent):
    """随机智能体: 在合法动作 (含 过/接牌) 中均匀选择"""

    def __init__(self, name: str = "random", rng: Optional[random.Random] = None):
        super().__init__(name)
        self.rng = rng or random.Random()

    def act(self, state: MatchState) -> Optional[Card]:
        options: List[Optional[Card]] = list(state.get_legal_actions())
        if state.is_legal(None):
            options.append(None)
        return self.rng.choice(options)


class EngineAgent(Agent):
    """由 DecisionEngine 驱动的智能体"""

    def __init__(self, engine: DecisionEngine, name: Optional[str] = None):
        super().__init__(name or engine.difficulty.value)
        self.engine = engine

    def act(self, state: MatchState) -> Optional[Card]:
        return self.engine.decide(state)


def make_tier_agents(
    difficulties: Sequence[Union[str, Difficulty]] = tuple(Difficulty),
    rng: Optional[random.Random] = None,
    tactics: Sequence[Tactic] = (),
    knowledge: Sequence[KnowledgeRecord] = (),
    config: Optional[EngineConfig] = None,
) -> List[EngineAgent]:
    """每个难度档位一个智能体，共享同一个随机源与数据快照"""
    rng = rng or random.Random()
    return [
        EngineAgent(DecisionEngine(d, tactics=tactics, knowledge=knowledge, config=config, rng=rng))
        for d in difficulties
    ]


class Evaluator:
    """
    评估器

    通过 DurakEnv 评估智能体，对手由环境内的 DecisionEngine 驱动

    Example:
        evaluator = Evaluator(lambda: DurakEnv(opponent="hard", seed=0))
        result = evaluator.evaluate(EngineAgent(DecisionEngine("expert")), n_games=50)
    """

    def __init__(self, env_fn: Callable):
        self.env_fn = env_fn

    def evaluate(
        self,
        agent: Agent,
        n_games: int = 100,
        verbose: bool = False,
    ) -> EvalResult:
        """
        评估智能体

        Args:
            agent: 待评估智能体
            n_games: 对局数量
            verbose: 是否输出进度

        Returns:
            评估结果
        """
        env = self.env_fn()

        wins = 0
        losses = 0
        draws = 0
        truncations = 0
        total_reward = 0.0
        total_length = 0

        for game_idx in range(n_games):
            agent.reset()
            obs, info = env.reset()
            done = env.state.is_finished
            episode_reward = 0.0
            truncated = False

            while not done:
                card = agent.act(env.state)
                obs, reward, terminated, truncated, info = env.step(card)
                episode_reward += reward
                done = terminated or truncated

            state = env.state
            if truncated and not state.is_finished:
                truncations += 1
            elif state.loser is None:
                draws += 1
            elif state.loser == env.agent_player:
                losses += 1
            else:
                wins += 1

            total_reward += episode_reward
            total_length += state.step_count

            if verbose and (game_idx + 1) % 10 == 0:
                logger.info(f"Game {game_idx + 1}/{n_games}, Win rate: {wins / (game_idx + 1):.2%}")

        env.close()

        return EvalResult(
            win_rate=wins / n_games if n_games > 0 else 0.0,
            loss_rate=losses / n_games if n_games > 0 else 0.0,
            draw_rate=draws / n_games if n_games > 0 else 0.0,
            avg_reward=total_reward / n_games if n_games > 0 else 0.0,
            avg_length=total_length / n_games if n_games > 0 else 0.0,
            games_played=n_games,
            truncated=truncations,
        )
