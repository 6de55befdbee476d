"""
残局求解

牌堆摸完、双方手牌总数很少时启用:
- 对所有合法候选按残局权重打分 (领先时激进、不落后时保留将牌)
- 双人对局中对手手牌可完全推断时，额外做带记忆化的精确极小极大搜索
"""
from typing import Dict, Optional, Sequence, Set
import logging

from core.cards import Card, sort_cards
from core.state import MatchState, Phase

from .config import EndgameConfig
from .context import DecisionContext
from .position import PositionEvaluator, card_strength
from .probability import ProbabilityEstimator

logger = logging.getLogger(__name__)

WIN = 1.0
DRAW = 0.0
LOSS = -1.0


class _BudgetExhausted(Exception):
    pass


class _Budget:
    """单次搜索的节点计数"""

    def __init__(self, limit: int):
        self.limit = limit
        self.nodes = 0

    def spend(self):
        self.nodes += 1
        if self.nodes > self.limit:
            raise _BudgetExhausted()


class EndgameSolver:
    """
    残局求解器

    Example:
        solver = EndgameSolver()
        if solver.applies(hand, context):
            card = solver.select_attack(hand, valid, context)
    """

    def __init__(
        self,
        config: Optional[EndgameConfig] = None,
        position: Optional[PositionEvaluator] = None,
    ):
        self.config = config or EndgameConfig()
        self.position = position or PositionEvaluator()

    def applies(self, hand: Sequence[Card], context: DecisionContext) -> bool:
        return (
            context.deck_remaining == 0
            and len(hand) + context.opponent_hand_size < self.config.max_cards
        )

    # =========================================================================
    # 残局权重
    # =========================================================================

    def score_attack(self, card: Card, hand: Sequence[Card], context: DecisionContext) -> float:
        cfg = self.config
        n, opp = len(hand), context.opponent_hand_size
        score = 0.0
        if n < opp:
            score += (card.rank - 7) * cfg.aggression
        elif n > opp:
            score -= (card.rank - 7) * cfg.caution
        if card.suit == context.trump and n > 2:
            score -= cfg.trump_penalty
        score += cfg.position * self.position.evaluate_after_play(
            hand, card, opp, context.trump, context.deck_remaining
        )
        return score

    def score_defense(
        self,
        card: Card,
        attack_card: Card,
        hand: Sequence[Card],
        context: DecisionContext,
    ) -> float:
        cfg = self.config
        n, opp = len(hand), context.opponent_hand_size
        score = -float(card_strength(card, context.trump) - card_strength(attack_card, context.trump))
        # 落后时不再保留将牌
        if card.suit == context.trump and n <= opp:
            score -= cfg.trump_penalty
        score += cfg.position * self.position.evaluate_after_play(
            hand, card, opp, context.trump, context.deck_remaining
        )
        return score

    # =========================================================================
    # 精确搜索
    # =========================================================================

    def exact_values(
        self,
        hand: Sequence[Card],
        context: DecisionContext,
        defending: bool,
    ) -> Optional[Dict[Optional[Card], float]]:
        """
        每个候选动作的精确结果 (1 胜 / 0 平 / -1 负)

        仅在双人、牌堆已空、对手手牌可完全推断时可用；
        超出节点预算时返回 None
        """
        if context.player_count != 2 or context.deck_remaining != 0:
            return None

        estimator = ProbabilityEstimator(context.trump, 0, context.visible_cards(hand))
        if estimator.unknown_count != context.opponent_hand_size:
            return None

        me, opp = (1, 0) if defending else (0, 1)
        hands = [None, None]
        hands[me] = sort_cards(hand)
        hands[opp] = sort_cards(estimator.unknown_cards)
        root = MatchState(
            hands=tuple(hands),
            deck=(),
            trump_card=None,
            trump_suit=context.trump,
            attacker=opp if defending else me,
            defender=me if defending else opp,
            board=context.board,
            phase=Phase.DEFEND if defending else Phase.ATTACK,
        )

        budget = _Budget(self.config.node_budget)
        memo: Dict[tuple, float] = {}
        values: Dict[Optional[Card], float] = {}
        try:
            for move in self._moves(root):
                values[move] = self._search(root.with_move(move), me, memo, set(), budget)
        except _BudgetExhausted:
            logger.debug(f"Endgame search budget exhausted after {budget.nodes} nodes")
            return None
        return values

    @staticmethod
    def _moves(state: MatchState):
        moves = list(state.get_legal_actions())
        if state.is_legal(None):
            moves.append(None)
        return moves

    def _search(
        self,
        state: MatchState,
        me: int,
        memo: Dict[tuple, float],
        path: Set[tuple],
        budget: '_Budget',
    ) -> float:
        if state.is_finished:
            if state.loser is None:
                return DRAW
            return LOSS if state.loser == me else WIN

        key = state.position_key()
        if key in memo:
            return memo[key]
        # 重复局面按平局处理
        if key in path:
            return DRAW

        budget.spend()

        maximizing = state.current_player == me
        best = LOSS if maximizing else WIN
        path.add(key)
        for move in self._moves(state):
            value = self._search(state.with_move(move), me, memo, path, budget)
            if maximizing:
                best = max(best, value)
                if best == WIN:
                    break
            else:
                best = min(best, value)
                if best == LOSS:
                    break
        path.discard(key)

        memo[key] = best
        return best

    # =========================================================================
    # 选择
    # =========================================================================

    def select_attack(
        self,
        hand: Sequence[Card],
        valid: Sequence[Card],
        context: DecisionContext,
    ) -> Optional[Card]:
        if not valid:
            return None
        exact = self.exact_values(hand, context, defending=False) or {}

        def score(card: Card) -> float:
            return self.score_attack(card, hand, context) + self.config.exact_weight * exact.get(card, 0.0)

        return max(valid, key=score)

    def select_defense(
        self,
        hand: Sequence[Card],
        attack_card: Card,
        valid: Sequence[Card],
        context: DecisionContext,
    ) -> Optional[Card]:
        """
        残局防守

        精确结果表明接牌更好时返回 None
        """
        if not valid:
            return None
        exact = self.exact_values(hand, context, defending=True)

        scores = {c: self.score_defense(c, attack_card, hand, context) for c in valid}
        if exact:
            # 接牌的基础分低于任何防守，只有精确结果更好时才会选中
            baseline = min(scores.values()) - 1.0
            for c in valid:
                scores[c] += self.config.exact_weight * exact.get(c, 0.0)
            if None in exact:
                scores[None] = baseline + self.config.exact_weight * exact[None]

        return max(scores, key=scores.get)

    def should_continue(
        self,
        hand: Sequence[Card],
        valid: Sequence[Card],
        context: DecisionContext,
    ) -> Optional[bool]:
        """
        精确判断是否继续进攻，无法精确求解时返回 None
        """
        if not valid:
            return False
        exact = self.exact_values(hand, context, defending=False)
        if not exact or None not in exact:
            return None
        best_card = max(valid, key=lambda c: exact.get(c, LOSS))
        return exact.get(best_card, LOSS) > exact[None]
