"""
战术适配器

将外部战术库 (场景 -> 动作模板) 转换为决策引擎可用的出牌偏好
"""
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence, Tuple
from collections import Counter
import random

from core.cards import Card, card_sort_key

from .config import CardValueWeights, TacticConfig
from .context import DecisionContext
from .position import evaluate_card

PHASE_ATTACK = "attack"
PHASE_DEFEND = "defend"

_PHASE_ALIASES = {
    "attack": PHASE_ATTACK,
    "defend": PHASE_DEFEND,
    "defense": PHASE_DEFEND,
}


@dataclass(frozen=True)
class ScenarioFilter:
    """
    战术适用场景

    Attributes:
        phase: "attack" 或 "defend"
        hand_size_range: 手牌数范围 (闭区间)
        deck_remaining_range: 剩余牌数范围 (闭区间)
        opponent_hand_size: 记录时的对手手牌数 (仅用于展示)
    """
    phase: str
    hand_size_range: Tuple[int, int]
    deck_remaining_range: Tuple[int, int]
    opponent_hand_size: Optional[int] = None

    @classmethod
    def around(
        cls,
        phase: str,
        hand_size: int,
        deck_remaining: int,
        config: Optional[TacticConfig] = None,
        opponent_hand_size: Optional[int] = None,
    ) -> 'ScenarioFilter':
        """以某个观测点为中心，按容差展开成范围"""
        config = config or TacticConfig()
        return cls(
            phase=_PHASE_ALIASES.get(phase, phase),
            hand_size_range=(hand_size - config.hand_size_tolerance, hand_size + config.hand_size_tolerance),
            deck_remaining_range=(deck_remaining - config.deck_tolerance, deck_remaining + config.deck_tolerance),
            opponent_hand_size=opponent_hand_size,
        )

    @property
    def hand_size(self) -> float:
        return sum(self.hand_size_range) / 2

    @property
    def deck_remaining(self) -> float:
        return sum(self.deck_remaining_range) / 2

    def matches(self, phase: str, hand_size: int, deck_remaining: int) -> bool:
        lo_h, hi_h = self.hand_size_range
        lo_d, hi_d = self.deck_remaining_range
        return (
            self.phase == _PHASE_ALIASES.get(phase, phase)
            and lo_h <= hand_size <= hi_h
            and lo_d <= deck_remaining <= hi_d
        )


@dataclass(frozen=True)
class TacticAction:
    """
    动作模板

    Attributes:
        type: 动作类型 (aggressive_start, multi_attack, conservative,
              desperate_defense, trump_finish, ...)
        card_preference: 选牌偏好 (low_cards, medium_cards, high_trumps,
                         duplicates, singles, any_valid)
        aggression_level: 进攻性 [0, 1]
    """
    type: str
    card_preference: str = "any_valid"
    aggression_level: float = 0.5


@dataclass(frozen=True)
class Tactic:
    """
    外部学习到的战术记录 (决策时只读)
    """
    name: str
    scenario: ScenarioFilter
    action: TacticAction
    success_rate: float = 0.5
    confidence: float = 0.3
    times_used: int = 0
    times_won: int = 0
    id: Optional[str] = None

    @property
    def quality(self) -> float:
        return self.success_rate * self.confidence

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tactic_name": self.name,
            "scenario": {
                "phase": self.scenario.phase,
                "hand_size_range": list(self.scenario.hand_size_range),
                "deck_remaining_range": list(self.scenario.deck_remaining_range),
                "opponent_hand_size": self.scenario.opponent_hand_size,
            },
            "action": {
                "type": self.action.type,
                "card_preference": self.action.card_preference,
                "aggression_level": self.action.aggression_level,
            },
            "success_rate": self.success_rate,
            "confidence": self.confidence,
            "times_used": self.times_used,
            "times_won": self.times_won,
        }

    @classmethod
    def from_dict(cls, d: dict, config: Optional[TacticConfig] = None) -> 'Tactic':
        """
        从存储文档创建

        场景既可以是范围 (hand_size_range / deck_remaining_range)，
        也可以是单点 (hand_size / deck_remaining)，单点按容差展开
        """
        s = d.get("scenario") or {}
        phase = _PHASE_ALIASES.get(s.get("phase", PHASE_ATTACK), PHASE_ATTACK)
        if "hand_size_range" in s and "deck_remaining_range" in s:
            scenario = ScenarioFilter(
                phase=phase,
                hand_size_range=tuple(s["hand_size_range"]),
                deck_remaining_range=tuple(s["deck_remaining_range"]),
                opponent_hand_size=s.get("opponent_hand_size"),
            )
        else:
            scenario = ScenarioFilter.around(
                phase,
                int(s.get("hand_size", 0)),
                int(s.get("deck_remaining", 0)),
                config=config,
                opponent_hand_size=s.get("opponent_hand_size"),
            )

        a = d.get("action") or {}
        action = TacticAction(
            type=a.get("type", "unknown"),
            card_preference=a.get("card_preference", "any_valid"),
            aggression_level=float(a.get("aggression_level", 0.5)),
        )
        return cls(
            name=d.get("tactic_name") or d.get("name", ""),
            scenario=scenario,
            action=action,
            success_rate=float(d.get("success_rate", 0.5)),
            confidence=float(d.get("confidence", 0.3)),
            times_used=int(d.get("times_used", 0)),
            times_won=int(d.get("times_won", 0)),
            id=d.get("id"),
        )


def similarity(a: Tactic, b: Tactic) -> float:
    """
    两条战术的相似度 [0, 1]

    同名视为重复；否则按 阶段、动作类型、手牌数、剩余牌数 累加
    """
    if a.name and a.name == b.name:
        return 1.0

    score = 0.0
    if a.scenario.phase == b.scenario.phase:
        score += 0.3
    if a.action.type == b.action.type:
        score += 0.3
    if abs(a.scenario.hand_size - b.scenario.hand_size) <= 1:
        score += 0.2
    if abs(a.scenario.deck_remaining - b.scenario.deck_remaining) <= 5:
        score += 0.2
    return score


class TacticDecision(NamedTuple):
    """
    战术执行结果

    applied=False 表示战术不适用，交给下一层；
    applied=True 且 card=None 表示战术决定 过/接牌
    """
    applied: bool
    card: Optional[Card] = None


NOT_APPLIED = TacticDecision(applied=False)


class TacticAdapter:
    """
    战术适配器

    按场景匹配战术，按 success_rate × confidence 排序，
    以战术质量为概率执行其动作模板
    """

    def __init__(
        self,
        tactics: Sequence[Tactic] = (),
        config: Optional[TacticConfig] = None,
        rng: Optional[random.Random] = None,
        card_weights: Optional[CardValueWeights] = None,
    ):
        self.tactics: List[Tactic] = list(tactics)
        self.config = config or TacticConfig()
        self.rng = rng or random.Random()
        self.card_weights = card_weights

    def applicable(self, phase: str, hand_size: int, deck_remaining: int) -> List[Tactic]:
        """匹配场景且达到质量下限的战术，质量高的在前"""
        matches = [
            t for t in self.tactics
            if t.scenario.matches(phase, hand_size, deck_remaining)
            and t.success_rate > self.config.min_success_rate
            and t.confidence >= self.config.min_confidence
        ]
        return sorted(matches, key=lambda t: t.quality, reverse=True)

    def _pick(self, phase: str, hand_size: int, deck_remaining: int) -> Optional[Tactic]:
        candidates = self.applicable(phase, hand_size, deck_remaining)
        if not candidates:
            return None
        tactic = candidates[0]
        if self.rng.random() >= tactic.quality:
            return None
        return tactic

    def apply_attack(
        self,
        valid: Sequence[Card],
        hand: Sequence[Card],
        context: DecisionContext,
    ) -> TacticDecision:
        """
        进攻战术

        先按选牌偏好过滤，再按进攻性决定出最大或最小的牌

        Args:
            valid: 合法攻击牌
            hand: 手牌
            context: 决策上下文

        Returns:
            TacticDecision
        """
        if not valid:
            return NOT_APPLIED
        tactic = self._pick(PHASE_ATTACK, len(hand), context.deck_remaining)
        if tactic is None:
            return NOT_APPLIED

        card = self._by_preference(tactic.action.card_preference, valid, hand, context)
        if card is None:
            card = self._by_aggression(tactic.action.aggression_level, valid)
        if card is None:
            return NOT_APPLIED
        return TacticDecision(applied=True, card=card)

    def apply_defense(
        self,
        valid: Sequence[Card],
        attack_card: Card,
        hand: Sequence[Card],
        context: DecisionContext,
    ) -> TacticDecision:
        """
        防守战术

        - desperate_defense: 用价值最低的牌硬防
        - conservative: 只用 10 以下的牌防守，否则接牌
        - trump_finish: 牌堆空时用最小的将牌
        """
        if not valid:
            return NOT_APPLIED
        tactic = self._pick(PHASE_DEFEND, len(hand), context.deck_remaining)
        if tactic is None:
            return NOT_APPLIED

        action_type = tactic.action.type
        if action_type == "desperate_defense":
            card = min(valid, key=lambda c: (evaluate_card(c, context.trump, hand, self.card_weights), card_sort_key(c)))
            return TacticDecision(applied=True, card=card)

        if action_type == "conservative":
            low = [c for c in valid if c.rank <= 10]
            if low:
                return TacticDecision(applied=True, card=min(low, key=card_sort_key))
            return TacticDecision(applied=True, card=None)

        if action_type == "trump_finish" and context.deck_remaining == 0:
            trumps = [c for c in valid if c.suit == context.trump]
            if trumps:
                return TacticDecision(applied=True, card=min(trumps, key=card_sort_key))

        return NOT_APPLIED

    def _by_preference(
        self,
        preference: str,
        valid: Sequence[Card],
        hand: Sequence[Card],
        context: DecisionContext,
    ) -> Optional[Card]:
        if preference == "low_cards":
            low = [c for c in valid if c.rank <= 8]
            return min(low, key=card_sort_key) if low else None

        if preference == "medium_cards":
            medium = [c for c in valid if 9 <= c.rank <= 11]
            return min(medium, key=card_sort_key) if medium else None

        if preference == "high_trumps":
            trumps = [c for c in valid if c.suit == context.trump and c.rank >= 11]
            return max(trumps, key=card_sort_key) if trumps else None

        if preference == "duplicates":
            counts = Counter(c.rank for c in valid)
            dups = [c for c in valid if counts[c.rank] > 1]
            if not dups:
                return None
            return min(dups, key=lambda c: (evaluate_card(c, context.trump, hand, self.card_weights), card_sort_key(c)))

        if preference == "singles":
            counts = Counter(c.rank for c in hand)
            singles = [c for c in valid if counts[c.rank] == 1 and c.suit != context.trump]
            return min(singles, key=card_sort_key) if singles else None

        return None

    @staticmethod
    def _by_aggression(level: float, valid: Sequence[Card]) -> Optional[Card]:
        if level > 0.7:
            return max(valid, key=card_sort_key)
        if level < 0.4:
            return min(valid, key=card_sort_key)
        return None
