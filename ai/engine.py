"""
决策引擎

按难度档位构建策略，数据源 (战术、历史经验) 通过构造参数注入
"""
from typing import Iterable, Optional, Sequence, Union
import asyncio
import logging
import random

from core.cards import Card
from core.state import IllegalMoveRequested, MatchState, Phase
from core.table import Board, first_undefended_index

from .config import Difficulty, EngineConfig
from .context import DecisionContext
from .knowledge import KnowledgeBase, KnowledgeRecord
from .policies import POLICIES, Policy
from .stores import ExternalStoreUnavailable, KnowledgeStore, TacticStore, call_with_retry
from .tactics import Tactic, TacticAdapter

logger = logging.getLogger(__name__)


class DecisionEngine:
    """
    决策引擎

    每局构建一次；数据源为只读快照，决策过程不做 I/O

    Example:
        engine = DecisionEngine("expert", tactics=tactics, rng=random.Random(0))
        card = engine.decide(state)
        state = apply_move(state, card)
    """

    def __init__(
        self,
        difficulty: Union[Difficulty, str] = Difficulty.MEDIUM,
        tactics: Iterable[Tactic] = (),
        knowledge: Iterable[KnowledgeRecord] = (),
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.difficulty = Difficulty.parse(difficulty)
        self.config = config or EngineConfig()
        self.rng = rng or random.Random()

        self.tactics = TacticAdapter(tactics, self.config.tactics, self.rng, self.config.card_value)
        self.knowledge = KnowledgeBase(knowledge, self.config.knowledge)
        self.policy: Policy = POLICIES[self.difficulty](self.config, self.rng, self.tactics, self.knowledge)

    def __repr__(self) -> str:
        return (
            f"DecisionEngine({self.difficulty.value}, tactics={len(self.tactics.tactics)}, "
            f"knowledge={len(self.knowledge)})"
        )

    @classmethod
    async def from_stores(
        cls,
        difficulty: Union[Difficulty, str],
        tactic_store: Optional[TacticStore] = None,
        knowledge_store: Optional[KnowledgeStore] = None,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
        attempts: int = 3,
        backoff: float = 0.2,
    ) -> 'DecisionEngine':
        """
        从外部存储读取快照并构建引擎

        存储不可用时记录警告，不带该数据源继续 (退化为纯启发式)
        """
        async def snapshot(store, name):
            if store is None:
                return []
            try:
                return await call_with_retry(store.list, attempts, backoff, f"{name} list")
            except ExternalStoreUnavailable as e:
                logger.warning(f"{name} store unavailable, continuing without it: {e}")
                return []

        tactics, knowledge = await asyncio.gather(
            snapshot(tactic_store, "tactic"),
            snapshot(knowledge_store, "knowledge"),
        )
        return cls(difficulty, tactics=tactics, knowledge=knowledge, config=config, rng=rng)

    # =========================================================================
    # 决策接口
    # =========================================================================

    def select_attack(self, hand: Sequence[Card], board: Board, context: DecisionContext) -> Optional[Card]:
        """选择攻击牌，无合法攻击时返回 None (过)"""
        return self.policy.select_attack(hand, board, context)

    def select_defense(self, hand: Sequence[Card], attack_card: Card, context: DecisionContext) -> Optional[Card]:
        """选择防守牌，返回 None 表示接牌"""
        return self.policy.select_defense(hand, attack_card, context)

    def should_continue_attacking(
        self,
        hand: Sequence[Card],
        board: Board,
        defender_hand_size: int,
        context: DecisionContext,
    ) -> bool:
        return self.policy.should_continue_attacking(hand, board, defender_hand_size, context)

    def decide(self, state: MatchState) -> Optional[Card]:
        """
        为当前行动玩家选择动作

        Args:
            state: 对局状态

        Returns:
            出的牌，None 表示 过 (攻击) 或 接牌 (防守)

        Raises:
            IllegalMoveRequested: 对局已结束，或策略给出了非法动作
        """
        if state.is_finished:
            raise IllegalMoveRequested("Match is already finished")

        player = state.current_player
        hand = state.hands[player]
        context = DecisionContext.from_state(state, player)

        if state.phase == Phase.DEFEND:
            attack_card = state.board[first_undefended_index(state.board)].attack
            move = self.select_defense(hand, attack_card, context)
        elif state.board and not self.should_continue_attacking(
            hand, state.board, len(state.hands[state.defender]), context
        ):
            move = None
        else:
            move = self.select_attack(hand, state.board, context)

        if not state.is_legal(move):
            raise IllegalMoveRequested(
                f"{self.difficulty.value} policy chose illegal move {move} for player {player}"
            )
        return move


def ai_decide(
    state: MatchState,
    difficulty: Union[Difficulty, str],
    tactic_source: Iterable[Tactic] = (),
    knowledge_source: Iterable[KnowledgeRecord] = (),
    rng: Optional[random.Random] = None,
    config: Optional[EngineConfig] = None,
) -> Optional[Card]:
    """
    对局驱动 API: 为当前行动玩家给出动作

    批量模拟时应复用 DecisionEngine，此函数每次调用都会重新构建引擎
    """
    engine = DecisionEngine(difficulty, tactic_source, knowledge_source, config=config, rng=rng)
    return engine.decide(state)
