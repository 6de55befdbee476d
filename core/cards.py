"""
牌的定义与编码

杜拉克 (Durak) 使用 36 张牌：
- 4 种花色: 红桃、方块、梅花、黑桃
- 6-10, J, Q, K, A 各一张 (A = 14)
"""
from enum import Enum, IntEnum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
import random
import numpy as np


class Suit(Enum):
    """花色"""
    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"
    SPADES = "spades"


class Rank(IntEnum):
    """牌面值定义"""
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13
    ACE = 14


SUITS: Tuple[Suit, ...] = (Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS, Suit.SPADES)
RANKS: Tuple[int, ...] = tuple(int(r) for r in Rank)

# 每位玩家的目标手牌数
HAND_SIZE = 6

# 牌面值到显示字符的映射
RANK_TO_STR: Dict[int, str] = {
    6: '6', 7: '7', 8: '8', 9: '9', 10: '10',
    11: 'J', 12: 'Q', 13: 'K', 14: 'A',
}

# 显示字符到牌面值的映射
STR_TO_RANK: Dict[str, int] = {v: k for k, v in RANK_TO_STR.items()}

SUIT_TO_SYMBOL: Dict[Suit, str] = {
    Suit.HEARTS: '♥',
    Suit.DIAMONDS: '♦',
    Suit.CLUBS: '♣',
    Suit.SPADES: '♠',
}

SYMBOL_TO_SUIT: Dict[str, Suit] = {v: k for k, v in SUIT_TO_SYMBOL.items()}


@dataclass(frozen=True, slots=True)
class Card:
    """
    不可变的牌

    Attributes:
        rank: 牌面值 6-14
        suit: 花色
    """
    rank: int
    suit: Suit

    def __post_init__(self):
        if self.rank not in RANK_TO_STR:
            raise ValueError(f"Invalid rank: {self.rank}")

    @property
    def card_id(self) -> str:
        """外部存储使用的标识，如 "6-spades" """
        return f"{self.rank}-{self.suit.value}"

    @property
    def index(self) -> int:
        """在 FULL_DECK 中的位置 (0-35)"""
        return SUITS.index(self.suit) * len(RANKS) + (self.rank - Rank.SIX)

    def is_trump(self, trump: Suit) -> bool:
        return self.suit == trump

    @classmethod
    def from_id(cls, card_id: str) -> 'Card':
        """从 "rank-suit" 标识创建"""
        rank, _, suit = card_id.partition('-')
        try:
            return cls(int(rank), Suit(suit))
        except ValueError:
            raise ValueError(f"Invalid card id: {card_id!r}") from None

    def __str__(self) -> str:
        return f"{RANK_TO_STR[self.rank]}{SUIT_TO_SYMBOL[self.suit]}"

    def __repr__(self) -> str:
        return f"Card({self})"


# 完整牌组 (36 张，按花色排列)
FULL_DECK: Tuple[Card, ...] = tuple(Card(rank, suit) for suit in SUITS for rank in RANKS)

DECK_SIZE = len(FULL_DECK)


def card_sort_key(card: Card) -> Tuple[int, int]:
    """手牌排序键: 先牌面值后花色"""
    return card.rank, SUITS.index(card.suit)


def sort_cards(cards: Iterable[Card]) -> Tuple[Card, ...]:
    return tuple(sorted(cards, key=card_sort_key))


def shuffle_deck(
    deck: Optional[Iterable[Card]] = None,
    rng: Optional[random.Random] = None,
) -> Tuple[Card, ...]:
    """
    洗牌

    Args:
        deck: 待洗的牌，默认完整牌组
        rng: 随机数源 (可注入以便复现)

    Returns:
        洗好的牌 (末尾为牌堆顶)
    """
    rng = rng or random.Random()
    cards = list(FULL_DECK if deck is None else deck)
    rng.shuffle(cards)
    return tuple(cards)


def cards_to_array(cards: Iterable[Card]) -> np.ndarray:
    """
    将牌列表转换为 36 维 one-hot 向量

    编码方式: 4 种花色 × 9 种牌面，与 FULL_DECK 顺序一致

    Args:
        cards: 牌列表

    Returns:
        36 维 numpy 数组
    """
    array = np.zeros(DECK_SIZE, dtype=np.float32)
    for card in cards:
        array[card.index] = 1
    return array


def array_to_cards(array: np.ndarray) -> List[Card]:
    """
    将 36 维数组转换回牌列表

    Args:
        array: 36 维 numpy 数组

    Returns:
        牌列表 (已排序)
    """
    return list(sort_cards(FULL_DECK[i] for i in np.flatnonzero(array > 0)))


def cards_to_str(cards: Iterable[Card]) -> str:
    """
    将牌列表转换为可读字符串

    Returns:
        如 "6♠ 10♥ A♦"
    """
    return ' '.join(str(c) for c in sort_cards(cards))


def str_to_card(s: str) -> Card:
    """
    将字符串转换为牌

    支持 "10♥"、"Q♠" 以及存储格式 "12-spades"
    """
    s = s.strip()
    if '-' in s:
        return Card.from_id(s)
    rank_str, symbol = s[:-1], s[-1:]
    if rank_str.upper() not in STR_TO_RANK or symbol not in SYMBOL_TO_SUIT:
        raise ValueError(f"Invalid card string: {s!r}")
    return Card(STR_TO_RANK[rank_str.upper()], SYMBOL_TO_SUIT[symbol])


def str_to_cards(s: str) -> List[Card]:
    """将空格分隔的字符串转换为牌列表"""
    return [str_to_card(token) for token in s.split()]
