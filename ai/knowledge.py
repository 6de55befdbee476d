"""
历史经验 (KnowledgeRecord)

外部知识库中记录的 (局面, 动作, 结果, 奖励)，决策时只读
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from core.cards import Card

from .config import KnowledgeConfig

ATTACK = "attack"
DEFENSE = "defense"

# 存储中出现过的决策类型写法
_DECISION_ALIASES = {
    "attack": ATTACK,
    "defense": DEFENSE,
    "defend": DEFENSE,
}


@dataclass(frozen=True)
class KnowledgeRecord:
    """
    一条历史决策记录

    Attributes:
        decision_type: "attack" 或 "defense"
        hand_size: 决策时的手牌数
        opponent_hand_size: 对手手牌数
        deck_remaining: 剩余牌数
        card_played: 出的牌 (None 表示过/接牌)
        reward: 奖励
        was_successful: 是否成功
        move_number: 回合内第几次出牌
    """
    decision_type: str
    hand_size: int
    card_played: Optional[Card] = None
    reward: float = 0.0
    was_successful: bool = False
    opponent_hand_size: int = 0
    deck_remaining: int = 0
    move_number: int = 1

    def to_dict(self) -> dict:
        return {
            "decision_type": self.decision_type,
            "hand_size": self.hand_size,
            "opponent_hand_size": self.opponent_hand_size,
            "deck_remaining": self.deck_remaining,
            "card_played": (
                {"rank": self.card_played.rank, "suit": self.card_played.suit.value}
                if self.card_played else None
            ),
            "reward": self.reward,
            "was_successful": self.was_successful,
            "move_number": self.move_number,
        }

    @classmethod
    def from_dict(cls, d: dict) -> 'KnowledgeRecord':
        """从存储文档创建，兼容 card_played 为 {rank, suit} 或 "rank-suit" 两种格式"""
        card = d.get("card_played")
        if isinstance(card, dict):
            card = Card.from_id(f"{card['rank']}-{card['suit']}")
        elif isinstance(card, str):
            card = Card.from_id(card)
        else:
            card = None

        decision = _DECISION_ALIASES.get(str(d.get("decision_type", ATTACK)).lower(), ATTACK)
        return cls(
            decision_type=decision,
            hand_size=int(d.get("hand_size", 0)),
            card_played=card,
            reward=float(d.get("reward", 0.0)),
            was_successful=bool(d.get("was_successful", False)),
            opponent_hand_size=int(d.get("opponent_hand_size", 0)),
            deck_remaining=int(d.get("deck_remaining", 0)),
            move_number=int(d.get("move_number", 1)),
        )


class KnowledgeBase:
    """
    历史经验快照

    对局开始前从外部存储读取一次，之后只读
    """

    def __init__(
        self,
        records: Iterable[KnowledgeRecord] = (),
        config: Optional[KnowledgeConfig] = None,
    ):
        self.records: List[KnowledgeRecord] = list(records)
        self.config = config or KnowledgeConfig()

    def __len__(self) -> int:
        return len(self.records)

    def similar(self, hand_size: int) -> List[KnowledgeRecord]:
        """手牌数相近且成功的记录"""
        tolerance = self.config.hand_size_tolerance
        matches = [
            r for r in self.records
            if r.was_successful and abs(r.hand_size - hand_size) <= tolerance
        ]
        return matches[:self.config.max_situations]

    def card_score(
        self,
        card: Card,
        situations: Sequence[KnowledgeRecord],
        decision_type: str,
    ) -> float:
        """
        候选牌的经验分

        同类决策中出过点数相近的牌、且奖励高的记录，平均奖励 × scale
        """
        relevant = [
            r for r in situations
            if r.decision_type == decision_type
            and r.card_played is not None
            and abs(r.card_played.rank - card.rank) <= self.config.rank_tolerance
            and r.reward >= self.config.min_reward
        ]
        if not relevant:
            return 0.0
        return sum(r.reward for r in relevant) / len(relevant) * self.config.scale

