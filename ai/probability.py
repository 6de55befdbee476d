"""
概率估计

根据己方可见的牌 (手牌 + 已出过的牌) 推断未知牌的分布，
估计对手能否压住某张牌
"""
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence
import numpy as np

from core.cards import Card, Suit, FULL_DECK, HAND_SIZE, cards_to_array
from core.rules import RuleEngine
from core.table import Board

from .position import card_strength, HIGH_RANK_MIN, LOW_RANK_MAX


@lru_cache(maxsize=None)
def beater_mask(card: Card, trump: Suit) -> np.ndarray:
    """能压住 card 的牌在 FULL_DECK 中的掩码"""
    mask = np.array([RuleEngine.can_beat(card, c, trump) for c in FULL_DECK], dtype=bool)
    mask.setflags(write=False)
    return mask


@lru_cache(maxsize=None)
def strong_mask(trump: Suit) -> np.ndarray:
    """高牌 (>= Q) 或将牌的掩码"""
    mask = np.array([c.rank >= HIGH_RANK_MIN or c.suit == trump for c in FULL_DECK], dtype=bool)
    mask.setflags(write=False)
    return mask


def rank_mask(rank: int) -> np.ndarray:
    return np.array([c.rank == rank for c in FULL_DECK], dtype=bool)


class ProbabilityEstimator:
    """
    概率估计器

    纯函数式: 只依赖构造参数，可见牌变化后需重新构造 (每回合一次)
    """

    def __init__(self, trump: Suit, deck_remaining: int, visible_cards: Iterable[Card]):
        """
        Args:
            trump: 将牌花色
            deck_remaining: 摸牌堆剩余数
            visible_cards: 己方可见的牌 (手牌 + 已出的牌)
        """
        self.trump = trump
        self.deck_remaining = deck_remaining
        self._unknown_mask = cards_to_array(visible_cards) == 0
        self._unknown_count = int(self._unknown_mask.sum())

    @property
    def unknown_cards(self) -> List[Card]:
        return [FULL_DECK[i] for i in np.flatnonzero(self._unknown_mask)]

    @property
    def unknown_count(self) -> int:
        return self._unknown_count

    def _fraction(self, mask: np.ndarray) -> float:
        if self._unknown_count == 0:
            return 0.0
        return float(np.count_nonzero(mask & self._unknown_mask)) / self._unknown_count

    @staticmethod
    def _at_least_one(p: float, n: int) -> float:
        # 对手 n 张牌视为独立抽取
        return 1.0 - (1.0 - p) ** n

    def probability_opponent_can_beat(self, card: Card, opponent_hand_size: int) -> float:
        """
        对手至少持有一张能压住 card 的牌的概率

        Args:
            card: 攻击牌
            opponent_hand_size: 对手手牌数

        Returns:
            [0, 1] 概率，对手无牌时为 0
        """
        if opponent_hand_size <= 0 or self._unknown_count == 0:
            return 0.0
        p = self._fraction(beater_mask(card, self.trump))
        return self._at_least_one(p, opponent_hand_size)

    def probability_opponent_holds_rank(self, rank: int, opponent_hand_size: int) -> float:
        """对手至少持有一张该点数牌的概率 (可以跟着加攻)"""
        if opponent_hand_size <= 0 or self._unknown_count == 0:
            return 0.0
        p = self._fraction(rank_mask(rank))
        return self._at_least_one(p, opponent_hand_size)

    def estimate_opponent_strength(self, opponent_hand_size: int) -> float:
        """
        对手手牌强度估计

        未知牌中高牌或将牌的比例 × 对手手牌数，按 6 张归一化到 [0, 1]
        """
        if self._unknown_count == 0:
            return 0.5
        ratio = self._fraction(strong_mask(self.trump))
        return float(np.clip(ratio * opponent_hand_size / HAND_SIZE, 0.0, 1.0))

    def expected_value(
        self,
        card: Card,
        hand_size: int,
        opponent_hand_size: int,
        board: Board = (),
        attacking: bool = True,
    ) -> float:
        """
        出这张牌的期望收益

        - 低牌先出
        - 将牌扣分，牌堆快空时放宽
        - 手牌少时更激进
        - 开局进攻偏好低牌、保留高牌
        - 对手压不住的牌加分
        """
        value = card_strength(card, self.trump)
        ev = (15 - value) * 0.1

        if card.suit == self.trump:
            ev -= 0.3
            if self.deck_remaining < 5:
                ev += 0.2

        if hand_size <= 3:
            ev += 0.4
            if value >= HIGH_RANK_MIN:
                ev += 0.3

        if attacking and not board:
            if value <= LOW_RANK_MAX:
                ev += 0.5
            if value >= HIGH_RANK_MIN:
                ev -= 0.4

        if attacking:
            ev += (1 - self.probability_opponent_can_beat(card, opponent_hand_size)) * 0.6

        return ev

    def find_optimal_attack(
        self,
        hand: Sequence[Card],
        board: Board,
        opponent_hand_size: int,
    ) -> Optional[Card]:
        """
        期望收益最高的攻击牌

        Returns:
            攻击牌，无合法攻击时为 None
        """
        candidates = RuleEngine.valid_attack_cards(hand, board)
        if not candidates:
            return None

        def score(card: Card) -> float:
            s = self.expected_value(card, len(hand), opponent_hand_size, board, attacking=True)
            s += (1 - self.probability_opponent_can_beat(card, opponent_hand_size)) * 0.8
            if sum(1 for c in hand if c.rank == card.rank) > 1:
                s += 0.3
            # 对手牌少时用低牌逼他出大牌
            if card.rank <= LOW_RANK_MAX and opponent_hand_size <= 3:
                s += 0.5
            return s

        return max(candidates, key=score)

    def find_optimal_defense(
        self,
        attack_card: Card,
        hand: Sequence[Card],
        opponent_hand_size: int,
    ) -> Optional[Card]:
        """
        最合适的防守牌

        偏好刚好压住的牌，避免过早用将牌和 K/A

        Returns:
            防守牌，无法防守时为 None
        """
        candidates = RuleEngine.valid_defense_cards(hand, attack_card, self.trump)
        if not candidates:
            return None

        attack_value = card_strength(attack_card, self.trump)

        def score(card: Card) -> float:
            s = -(card_strength(card, self.trump) - attack_value) * 0.3
            if card.suit == self.trump:
                s -= 0.8
                if self.deck_remaining > 10:
                    s -= 0.5
                if self.deck_remaining < 5:
                    s += 0.7
            if card.rank >= 13:
                s -= 0.6
            s += self.probability_opponent_can_beat(card, opponent_hand_size) * 0.4
            return s

        return max(candidates, key=score)
