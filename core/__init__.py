"""
Core Layer - 纯游戏逻辑 (无 AI 依赖)

Modules:
    cards: 牌定义与编码
    table: 牌桌条目
    rules: 规则引擎
    state: 对局状态与对局驱动 API
"""
from .cards import (
    Suit,
    Rank,
    Card,
    SUITS,
    RANKS,
    HAND_SIZE,
    FULL_DECK,
    DECK_SIZE,
    card_sort_key,
    sort_cards,
    shuffle_deck,
    cards_to_array,
    array_to_cards,
    cards_to_str,
    str_to_card,
    str_to_cards,
)

from .table import (
    TableEntry,
    Board,
    board_ranks,
    board_cards,
    undefended,
    all_defended,
)

from .rules import RuleEngine, Termination

from .state import (
    Phase,
    MatchState,
    IllegalMoveRequested,
    new_match,
    legal_moves,
    apply_move,
    check_conservation,
)

__all__ = [
    # cards
    "Suit",
    "Rank",
    "Card",
    "SUITS",
    "RANKS",
    "HAND_SIZE",
    "FULL_DECK",
    "DECK_SIZE",
    "card_sort_key",
    "sort_cards",
    "shuffle_deck",
    "cards_to_array",
    "array_to_cards",
    "cards_to_str",
    "str_to_card",
    "str_to_cards",
    # table
    "TableEntry",
    "Board",
    "board_ranks",
    "board_cards",
    "undefended",
    "all_defended",
    # rules
    "RuleEngine",
    "Termination",
    # state
    "Phase",
    "MatchState",
    "IllegalMoveRequested",
    "new_match",
    "legal_moves",
    "apply_move",
    "check_conservation",
]
