"""
局面评估

与具体候选动作无关的手牌/局面打分 (子力与结构优势)
"""
from collections import Counter
from typing import Optional, Sequence

from core.cards import Card, Suit

from .config import CardValueWeights, PositionWeights

LOW_RANK_MAX = 8
HIGH_RANK_MIN = 12


def card_strength(card: Card, trump: Suit) -> int:
    """牌力: 牌面值，将牌 +10"""
    return card.rank + (10 if card.suit == trump else 0)


def evaluate_card(
    card: Card,
    trump: Suit,
    hand: Sequence[Card] = (),
    weights: Optional[CardValueWeights] = None,
) -> float:
    """
    单张牌的保留价值 (越低越适合先出)

    - 将牌更值得保留
    - 手里有同点数的牌适合组织进攻，价值降低
    """
    weights = weights or CardValueWeights()
    score = float(card.rank)
    if card.suit == trump:
        score += weights.trump_premium * weights.trump_conservation
    if sum(1 for c in hand if c.rank == card.rank) > 1:
        score -= 5 * weights.aggressive_factor
    return score


class PositionEvaluator:
    """
    局面评估器

    各项独立相加，结果无界，只用于同一参数下候选局面之间的相对比较
    """

    def __init__(self, weights: Optional[PositionWeights] = None):
        self.weights = weights or PositionWeights()

    def evaluate(
        self,
        hand: Sequence[Card],
        opponent_hand_size: int,
        trump: Suit,
        deck_remaining: int,
    ) -> float:
        """
        评估局面

        Args:
            hand: 自己的手牌
            opponent_hand_size: 对手手牌数
            trump: 将牌花色
            deck_remaining: 剩余牌数

        Returns:
            分数 (越高越好)
        """
        w = self.weights
        rank_counts = Counter(c.rank for c in hand)

        score = w.card_advantage * (opponent_hand_size - len(hand))
        score += w.trump * sum(1 for c in hand if c.suit == trump)
        score += w.low_card * sum(1 for c in hand if c.rank <= LOW_RANK_MAX)
        score += w.high_card * sum(1 for c in hand if c.rank >= HIGH_RANK_MIN)
        score += w.duplicate_rank * sum(1 for count in rank_counts.values() if count > 1)

        # 牌堆摸完后手牌越少越接近胜利
        if deck_remaining == 0 and len(hand) <= w.endgame_hand_size:
            score *= w.endgame_multiplier

        return score

    def evaluate_after_play(
        self,
        hand: Sequence[Card],
        card: Card,
        opponent_hand_size: int,
        trump: Suit,
        deck_remaining: int,
    ) -> float:
        """出掉 card 之后的局面分"""
        rest = [c for c in hand if c != card]
        return self.evaluate(rest, opponent_hand_size, trump, deck_remaining)
