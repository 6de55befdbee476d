"""
决策上下文

AI 做决策时可见的公开信息
"""
from dataclasses import dataclass
from typing import Tuple

from core.cards import Card, Suit
from core.state import MatchState
from core.table import Board, board_cards


@dataclass(frozen=True)
class DecisionContext:
    """
    Attributes:
        trump: 将牌花色
        deck_remaining: 剩余可摸牌数 (含亮将牌)
        opponent_hand_size: 对手 (攻击时为防守方，防守时为攻击方) 手牌数
        board: 当前牌桌
        seen_cards: 已公开的牌 (弃牌堆、亮将牌)
        player_count: 玩家数
    """
    trump: Suit
    deck_remaining: int
    opponent_hand_size: int
    board: Board = ()
    seen_cards: Tuple[Card, ...] = ()
    player_count: int = 2

    @classmethod
    def from_state(cls, state: MatchState, player: int) -> 'DecisionContext':
        """从对局状态构建 player 视角的上下文"""
        opponent = state.defender if player == state.attacker else state.attacker
        seen = state.discard
        if state.trump_card is not None:
            seen = seen + (state.trump_card,)
        return cls(
            trump=state.trump_suit,
            deck_remaining=state.deck_remaining,
            opponent_hand_size=len(state.hands[opponent]),
            board=state.board,
            seen_cards=seen,
            player_count=state.player_count,
        )

    @property
    def endgame(self) -> bool:
        return self.deck_remaining == 0

    def visible_cards(self, hand) -> Tuple[Card, ...]:
        """己方可见的所有牌: 手牌 + 牌桌 + 已公开的牌"""
        return tuple(hand) + tuple(board_cards(self.board)) + self.seen_cards
