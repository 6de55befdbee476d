"""
对战竞技场

直接驱动对局 API 组织智能体之间的批量对战
"""
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple
from dataclasses import dataclass, field
from collections import defaultdict
from itertools import permutations
import logging
import random
from concurrent.futures import ThreadPoolExecutor

from core.cards import Card
from core.state import MatchState, Phase, apply_move, new_match

from .evaluator import Agent

logger = logging.getLogger(__name__)


class MoveRecord(NamedTuple):
    """一步动作及其发生时的公开局面"""
    player: int
    phase: Phase
    hand_size: int
    opponent_hand_size: int
    deck_remaining: int
    board_size: int
    card: Optional[Card]


@dataclass
class MatchResult:
    """
    对局结果

    truncated 为 True 时对局因步数上限中止，没有杜拉克
    """
    agents: Tuple[str, ...]
    loser: Optional[int]
    length: int
    truncated: bool = False
    seed: Optional[int] = None
    history: Tuple[MoveRecord, ...] = ()

    @property
    def loser_name(self) -> Optional[str]:
        return None if self.loser is None else self.agents[self.loser]

    @property
    def is_draw(self) -> bool:
        return not self.truncated and self.loser is None

    def won(self, player: int) -> bool:
        """正常结束且 player 不是杜拉克"""
        return not self.truncated and self.loser is not None and self.loser != player


@dataclass
class TournamentResult:
    """锦标赛结果"""
    standings: Dict[str, Dict[str, float]]
    total_games: int
    matches: List[MatchResult] = field(default_factory=list)

    def get_ranking(self) -> List[Tuple[str, float]]:
        """按胜率排名"""
        return sorted(
            [(name, stats.get("win_rate", 0.0)) for name, stats in self.standings.items()],
            key=lambda x: x[1],
            reverse=True,
        )

    def __repr__(self) -> str:
        ranking = self.get_ranking()
        lines = [f"Tournament Results ({self.total_games} games):"]
        for i, (name, win_rate) in enumerate(ranking):
            lines.append(f"  {i+1}. {name}: {win_rate:.2%}")
        return "\n".join(lines)


def _record(state: MatchState, card: Optional[Card]) -> MoveRecord:
    player = state.current_player
    opponent = state.defender if player == state.attacker else state.attacker
    return MoveRecord(
        player=player,
        phase=state.phase,
        hand_size=len(state.hands[player]),
        opponent_hand_size=len(state.hands[opponent]),
        deck_remaining=state.deck_remaining,
        board_size=len(state.board),
        card=card,
    )


class Arena:
    """
    对战竞技场

    每局座位 i 由 agents[i] 控制，对局超过 max_moves 步视为截断
    """

    def __init__(
        self,
        max_moves: int = 1000,
        record_history: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self.max_moves = max_moves
        self.record_history = record_history
        self.rng = rng or random.Random()

    def _play_single_match(self, agents: Sequence[Agent], seed: Optional[int]) -> MatchResult:
        """单场对局"""
        for agent in agents:
            agent.reset()

        state = new_match(len(agents), seed=seed)
        history: List[MoveRecord] = []

        while not state.is_finished and state.step_count < self.max_moves:
            card = agents[state.current_player].act(state)
            if self.record_history:
                history.append(_record(state, card))
            state = apply_move(state, card)

        return MatchResult(
            agents=tuple(agent.name for agent in agents),
            loser=state.loser,
            length=state.step_count,
            truncated=not state.is_finished,
            seed=seed,
            history=tuple(history),
        )

    def play_match(
        self,
        agents: Sequence[Agent],
        n_games: int = 1,
    ) -> List[MatchResult]:
        """
        进行对局

        Args:
            agents: 2-5 个智能体
            n_games: 对局数

        Returns:
            对局结果列表
        """
        seeds = [self.rng.randrange(2 ** 32) for _ in range(n_games)]
        return [self._play_single_match(agents, seed) for seed in seeds]

    def round_robin(
        self,
        agents: Sequence[Agent],
        games_per_match: int = 10,
    ) -> TournamentResult:
        """
        循环赛

        每对智能体在两个座位上各打 games_per_match 局

        Args:
            agents: 智能体列表 (名字需唯一)
            games_per_match: 每个座位组合的对局数

        Returns:
            锦标赛结果
        """
        standings = {agent.name: defaultdict(float) for agent in agents}
        all_matches: List[MatchResult] = []

        for i, j in permutations(range(len(agents)), 2):
            pair = [agents[i], agents[j]]
            results = self.play_match(pair, games_per_match)
            all_matches.extend(results)

            for result in results:
                for seat, agent in enumerate(pair):
                    stats = standings[agent.name]
                    stats["games"] += 1
                    if result.truncated:
                        stats["truncated"] += 1
                    elif result.loser is None:
                        stats["draws"] += 1
                    elif result.loser == seat:
                        stats["losses"] += 1
                    else:
                        stats["wins"] += 1

            logger.info(f"{pair[0].name} vs {pair[1].name}: {games_per_match} games done")

        for name, stats in standings.items():
            if stats["games"] > 0:
                stats["win_rate"] = stats["wins"] / stats["games"]
                stats["loss_rate"] = stats["losses"] / stats["games"]

        return TournamentResult(
            standings={name: dict(stats) for name, stats in standings.items()},
            total_games=len(all_matches),
            matches=all_matches,
        )


class ParallelArena(Arena):
    """
    并行对战竞技场

    使用多线程加速对战；对局之间只共享只读的数据快照，
    但智能体共享的随机源会使结果不可复现
    """

    def __init__(
        self,
        max_moves: int = 1000,
        record_history: bool = False,
        rng: Optional[random.Random] = None,
        n_workers: int = 4,
    ):
        super().__init__(max_moves, record_history, rng)
        self.n_workers = n_workers

    def play_match(
        self,
        agents: Sequence[Agent],
        n_games: int = 1,
    ) -> List[MatchResult]:
        """并行对局，结果按提交顺序返回"""
        if n_games <= self.n_workers:
            return super().play_match(agents, n_games)

        seeds = [self.rng.randrange(2 ** 32) for _ in range(n_games)]
        with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
            futures = [
                executor.submit(self._play_single_match, agents, seed)
                for seed in seeds
            ]
            return [future.result() for future in futures]
