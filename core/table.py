"""
牌桌 (Board) 定义

一回合内的 攻击牌/防守牌 对
"""
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Tuple

from .cards import Card


@dataclass(frozen=True, slots=True)
class TableEntry:
    """
    不可变的牌桌条目

    Attributes:
        attack: 攻击牌
        defense: 防守牌 (None 表示尚未被打)
    """
    attack: Card
    defense: Optional[Card] = None

    @property
    def is_defended(self) -> bool:
        return self.defense is not None

    def with_defense(self, card: Card) -> 'TableEntry':
        return TableEntry(attack=self.attack, defense=card)

    @property
    def cards(self) -> Tuple[Card, ...]:
        if self.defense is None:
            return (self.attack,)
        return (self.attack, self.defense)

    def to_dict(self) -> dict:
        """存储边界的序列化格式"""
        return {
            "attack": self.attack.card_id,
            "defense": self.defense.card_id if self.defense else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> 'TableEntry':
        defense = d.get("defense")
        return cls(
            attack=Card.from_id(d["attack"]),
            defense=Card.from_id(defense) if defense else None,
        )


Board = Tuple[TableEntry, ...]


def board_ranks(board: Iterable[TableEntry]) -> FrozenSet[int]:
    """牌桌上出现过的所有牌面值 (攻击牌与防守牌)"""
    ranks = set()
    for entry in board:
        ranks.add(entry.attack.rank)
        if entry.defense is not None:
            ranks.add(entry.defense.rank)
    return frozenset(ranks)


def board_cards(board: Iterable[TableEntry]) -> List[Card]:
    """牌桌上的所有牌"""
    return [card for entry in board for card in entry.cards]


def undefended(board: Iterable[TableEntry]) -> List[TableEntry]:
    """尚未被打的条目"""
    return [entry for entry in board if not entry.is_defended]


def first_undefended_index(board: Board) -> Optional[int]:
    for i, entry in enumerate(board):
        if not entry.is_defended:
            return i
    return None


def all_defended(board: Iterable[TableEntry]) -> bool:
    return all(entry.is_defended for entry in board)
