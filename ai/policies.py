"""
难度档位策略

每个档位一个 Policy 子类，共享同一接口:
- select_attack(hand, board, context) -> Card | None
- select_defense(hand, attack_card, context) -> Card | None (None 表示接牌)
- should_continue_attacking(hand, board, defender_hand_size, context) -> bool
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Type
import math
import random

from core.cards import Card, card_sort_key
from core.rules import RuleEngine
from core.table import Board, undefended

from .config import Difficulty, EngineConfig, TierConfig
from .context import DecisionContext
from .endgame import EndgameSolver
from .knowledge import ATTACK, DEFENSE, KnowledgeBase
from .position import PositionEvaluator, card_strength, evaluate_card
from .probability import ProbabilityEstimator
from .tactics import TacticAdapter


class Policy(ABC):
    """
    策略基类

    子类实现 _attack / _defend / _continue，
    合法性与结构性检查在基类完成
    """

    difficulty: Difficulty

    def __init__(
        self,
        config: EngineConfig,
        rng: random.Random,
        tactics: Optional[TacticAdapter] = None,
        knowledge: Optional[KnowledgeBase] = None,
    ):
        self.config = config
        self.tier: TierConfig = config.tier(self.difficulty)
        self.rng = rng
        self.tactics = tactics or TacticAdapter(config=config.tactics, rng=rng)
        self.knowledge = knowledge or KnowledgeBase(config=config.knowledge)

    def estimator(self, hand: Sequence[Card], context: DecisionContext) -> ProbabilityEstimator:
        return ProbabilityEstimator(context.trump, context.deck_remaining, context.visible_cards(hand))

    def card_value(self, card: Card, context: DecisionContext, hand: Sequence[Card] = ()) -> float:
        return evaluate_card(card, context.trump, hand, self.config.card_value)

    def select_attack(self, hand: Sequence[Card], board: Board, context: DecisionContext) -> Optional[Card]:
        """加攻时 context.opponent_hand_size 即防守方手牌数"""
        if board and (undefended(board) or not RuleEngine.can_add_attack(board, context.opponent_hand_size)):
            return None
        valid = RuleEngine.valid_attack_cards(hand, board)
        if not valid:
            return None
        return self._attack(valid, hand, board, context)

    def select_defense(self, hand: Sequence[Card], attack_card: Card, context: DecisionContext) -> Optional[Card]:
        valid = RuleEngine.valid_defense_cards(hand, attack_card, context.trump)
        if not valid:
            return None
        return self._defend(valid, attack_card, hand, context)

    def should_continue_attacking(
        self,
        hand: Sequence[Card],
        board: Board,
        defender_hand_size: int,
        context: DecisionContext,
    ) -> bool:
        """
        是否继续加攻

        结构性检查优先，任何一项不满足都不加攻
        """
        valid = RuleEngine.valid_attack_cards(hand, board)
        if not valid:
            return False
        if undefended(board):
            return False
        if not RuleEngine.can_add_attack(board, defender_hand_size):
            return False
        return self._continue(valid, hand, board, defender_hand_size, context)

    def _has_low_card(self, valid: Sequence[Card], hand: Sequence[Card], context: DecisionContext) -> bool:
        threshold = self.tier.low_value_threshold
        if threshold is None:
            return True
        return any(self.card_value(c, context, hand) < threshold for c in valid)

    def _overspends(self, card: Card, attack_card: Card, hand: Sequence[Card], context: DecisionContext) -> bool:
        """手牌多且牌堆未空时，防守牌比攻击牌强太多视为浪费"""
        margin = self.tier.overspend_margin
        if margin is None or context.deck_remaining == 0:
            return False
        if len(hand) <= self.tier.overspend_min_hand:
            return False
        gap = card_strength(card, context.trump) - card_strength(attack_card, context.trump)
        return gap > margin

    @abstractmethod
    def _attack(self, valid: List[Card], hand: Sequence[Card], board: Board, context: DecisionContext) -> Optional[Card]:
        ...

    @abstractmethod
    def _defend(self, valid: List[Card], attack_card: Card, hand: Sequence[Card], context: DecisionContext) -> Optional[Card]:
        ...

    def _continue(
        self,
        valid: List[Card],
        hand: Sequence[Card],
        board: Board,
        defender_hand_size: int,
        context: DecisionContext,
    ) -> bool:
        if not self._has_low_card(valid, hand, context):
            return False
        return self.rng.random() < self.tier.continue_prob


class EasyPolicy(Policy):
    """随机出牌，较高概率出最差的牌，有时能防也接牌"""

    difficulty = Difficulty.EASY

    def _attack(self, valid, hand, board, context):
        if self.rng.random() < self.tier.worst_choice_prob:
            return max(valid, key=lambda c: (self.card_value(c, context), card_sort_key(c)))
        return self.rng.choice(valid)

    def _defend(self, valid, attack_card, hand, context):
        if self.rng.random() < self.tier.take_prob:
            return None
        return self.rng.choice(valid)


class MediumPolicy(Policy):
    """按 点数 + 将牌加成 排序，多数时候出最优，否则在较好的一半里随机"""

    difficulty = Difficulty.MEDIUM

    def _attack(self, valid, hand, board, context):
        ranked = sorted(valid, key=lambda c: (self.card_value(c, context), card_sort_key(c)))
        if self.rng.random() < self.tier.best_choice_prob:
            return ranked[0]
        best_half = ranked[:max(1, math.ceil(len(ranked) / 2))]
        return self.rng.choice(best_half)

    def _defend(self, valid, attack_card, hand, context):
        if self.rng.random() < self.tier.take_prob:
            return None
        return min(valid, key=lambda c: (card_strength(c, context.trump), card_sort_key(c)))


class HardPolicy(Policy):
    """直接使用概率估计器的最优解"""

    difficulty = Difficulty.HARD

    def _attack(self, valid, hand, board, context):
        return self.estimator(hand, context).find_optimal_attack(hand, board, context.opponent_hand_size)

    def _defend(self, valid, attack_card, hand, context):
        card = self.estimator(hand, context).find_optimal_defense(attack_card, hand, context.opponent_hand_size)
        if card is not None and self._overspends(card, attack_card, hand, context):
            return None
        return card


class ExpertPolicy(Policy):
    """
    专家策略

    按固定优先级: 残局求解 -> 战术 -> 启发式评分，第一个给出结果的层胜出
    """

    difficulty = Difficulty.EXPERT

    def __init__(self, config, rng, tactics=None, knowledge=None):
        super().__init__(config, rng, tactics, knowledge)
        self.position = PositionEvaluator(config.position)
        self.solver = EndgameSolver(config.endgame, self.position)

    # =========================================================================
    # 进攻
    # =========================================================================

    def _attack(self, valid, hand, board, context):
        if self.solver.applies(hand, context):
            return self.solver.select_attack(hand, valid, context)

        decision = self.tactics.apply_attack(valid, hand, context)
        if decision.applied and decision.card is not None:
            return decision.card

        return self.heuristic_attack(valid, hand, board, context)

    def score_attack(
        self,
        card: Card,
        hand: Sequence[Card],
        board: Board,
        context: DecisionContext,
        estimator: ProbabilityEstimator,
        situations,
    ) -> float:
        w = self.config.expert
        score = -card_strength(card, context.trump) * w.card_value
        score += (1 - estimator.probability_opponent_can_beat(card, context.opponent_hand_size)) * w.no_defense_bonus
        score += self.knowledge.card_score(card, situations, ATTACK) * w.knowledge_attack
        score += (sum(1 for c in hand if c.rank == card.rank) - 1) * w.duplicate_bonus

        if not board and context.deck_remaining > w.opening_deck_min:
            if card.rank <= 8 and card.suit != context.trump:
                score += w.opening_bonus

        if card.suit == context.trump and context.deck_remaining > w.early_deck_min:
            score -= w.early_trump_penalty

        score += w.position * self.position.evaluate_after_play(
            hand, card, context.opponent_hand_size, context.trump, context.deck_remaining
        )
        return score

    def heuristic_attack(self, valid, hand, board, context) -> Optional[Card]:
        estimator = self.estimator(hand, context)
        situations = self.knowledge.similar(len(hand))
        return max(valid, key=lambda c: self.score_attack(c, hand, board, context, estimator, situations))

    # =========================================================================
    # 防守
    # =========================================================================

    def _defend(self, valid, attack_card, hand, context):
        if self.solver.applies(hand, context):
            return self.solver.select_defense(hand, attack_card, valid, context)

        decision = self.tactics.apply_defense(valid, attack_card, hand, context)
        if decision.applied:
            return decision.card

        return self.heuristic_defense(valid, attack_card, hand, context)

    def defense_cost(
        self,
        card: Card,
        attack_card: Card,
        hand: Sequence[Card],
        context: DecisionContext,
        estimator: ProbabilityEstimator,
        situations,
    ) -> float:
        """
        防守代价 (越低越好)，inf 表示宁可接牌
        """
        w = self.config.expert
        if self._overspends(card, attack_card, hand, context):
            return math.inf

        attack_value = card_strength(attack_card, context.trump)
        cost = float(card_strength(card, context.trump))
        cost += (cost - attack_value) * w.waste_factor

        if card.suit == context.trump and context.deck_remaining > w.early_deck_min:
            cost += w.defense_trump_penalty

        cost -= self.knowledge.card_score(card, situations, DEFENSE) * w.knowledge_defense
        # 对手可以用同点数的牌继续加攻
        cost += estimator.probability_opponent_holds_rank(card.rank, context.opponent_hand_size) * w.rethrow_penalty

        if context.deck_remaining == 0:
            if len(hand) > context.opponent_hand_size:
                cost -= w.behind_endgame_bonus
            elif cost > attack_value + w.take_margin:
                return math.inf
        return cost

    def heuristic_defense(self, valid, attack_card, hand, context) -> Optional[Card]:
        estimator = self.estimator(hand, context)
        situations = self.knowledge.similar(len(hand))
        costs = {c: self.defense_cost(c, attack_card, hand, context, estimator, situations) for c in valid}
        best = min(valid, key=lambda c: (costs[c], card_sort_key(c)))
        if math.isinf(costs[best]):
            return None
        return best

    # =========================================================================
    # 继续进攻
    # =========================================================================

    def _continue(self, valid, hand, board, defender_hand_size, context):
        if self.solver.applies(hand, context):
            exact = self.solver.should_continue(hand, valid, context)
            if exact is not None:
                return exact

        if not self._has_low_card(valid, hand, context):
            return False
        if len(hand) <= 2 and defender_hand_size <= 2:
            return True
        if context.deck_remaining <= 5:
            return len(board) < min(5, defender_hand_size)
        return self.rng.random() < self.tier.continue_prob


POLICIES: Dict[Difficulty, Type[Policy]] = {
    Difficulty.EASY: EasyPolicy,
    Difficulty.MEDIUM: MediumPolicy,
    Difficulty.HARD: HardPolicy,
    Difficulty.EXPERT: ExpertPolicy,
}
