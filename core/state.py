"""
对局状态定义

使用不可变数据结构，支持:
- 哈希 (用于残局求解的置换表)
- 批量模拟时无共享可变状态
- 易于序列化
"""
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple
from enum import Enum
import random

from .cards import Card, Suit, DECK_SIZE, shuffle_deck
from .rules import RuleEngine
from .table import Board, TableEntry, first_undefended_index, all_defended


class Phase(Enum):
    """对局阶段"""
    ATTACK = "attack"      # 攻击方出牌 / 结束进攻
    DEFEND = "defend"      # 防守方压牌 / 接牌
    FINISHED = "finished"  # 对局结束


class IllegalMoveRequested(ValueError):
    """调用方请求了不在 legal_moves 中的动作 (调用契约错误)"""


@dataclass(frozen=True)
class MatchState:
    """
    不可变对局状态

    Attributes:
        hands: 各玩家手牌 (已排序)
        deck: 摸牌堆 (不含亮将牌，末尾为堆顶)
        trump_card: 亮将牌 (被摸走后为 None)
        trump_suit: 将牌花色，整局不变
        attacker: 攻击方
        defender: 防守方
        board: 当前回合的牌桌
        phase: 对局阶段
        discard: 弃牌堆 (成功防守后的牌)
        step_count: 当前步数
        loser: 杜拉克 (结束时有效，None 为平局)
    """
    hands: Tuple[Tuple[Card, ...], ...]
    deck: Tuple[Card, ...]
    trump_card: Optional[Card]
    trump_suit: Suit
    attacker: int
    defender: int
    board: Board = ()
    phase: Phase = Phase.ATTACK
    discard: Tuple[Card, ...] = ()
    step_count: int = 0
    loser: Optional[int] = None

    @classmethod
    def initial(
        cls,
        player_count: int = 2,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> 'MatchState':
        """
        创建初始对局状态

        Args:
            player_count: 玩家数 (2-5)
            seed: 随机种子 (未提供 rng 时使用)
            rng: 随机数源

        Returns:
            初始状态 (攻击阶段)
        """
        if rng is None:
            rng = random.Random(seed)

        deck = shuffle_deck(rng=rng)
        hands, remaining, trump_card = RuleEngine.deal_initial_hands(deck, player_count)
        trump_suit = trump_card.suit

        attacker = RuleEngine.determine_first_attacker(hands, trump_suit)
        defender = (attacker + 1) % player_count

        return cls(
            hands=hands,
            deck=remaining,
            trump_card=trump_card,
            trump_suit=trump_suit,
            attacker=attacker,
            defender=defender,
        )

    @property
    def player_count(self) -> int:
        return len(self.hands)

    @property
    def draw_pile(self) -> Tuple[Card, ...]:
        """完整摸牌堆 (亮将牌在底部)"""
        if self.trump_card is None:
            return self.deck
        return (self.trump_card,) + self.deck

    @property
    def deck_remaining(self) -> int:
        """剩余可摸牌数 (含亮将牌)"""
        return len(self.deck) + (1 if self.trump_card is not None else 0)

    @property
    def deck_empty(self) -> bool:
        return self.deck_remaining == 0

    @property
    def is_finished(self) -> bool:
        return self.phase == Phase.FINISHED

    @property
    def is_draw(self) -> bool:
        return self.is_finished and self.loser is None

    @property
    def current_player(self) -> int:
        """当前行动玩家"""
        return self.defender if self.phase == Phase.DEFEND else self.attacker

    def get_hand(self, player: int) -> Tuple[Card, ...]:
        return self.hands[player]

    def all_cards(self) -> List[Card]:
        """状态中所有的牌 (用于守恒检查)"""
        cards = [c for hand in self.hands for c in hand]
        cards.extend(self.draw_pile)
        cards.extend(c for entry in self.board for c in entry.cards)
        cards.extend(self.discard)
        return cards

    def position_key(self) -> tuple:
        """局面键 (忽略步数)，用于置换表"""
        return (self.hands, self.draw_pile, self.attacker, self.defender, self.board, self.phase)

    def get_legal_actions(self) -> List[Card]:
        """
        获取当前玩家的合法出牌

        攻击阶段: 牌桌为空时任意手牌；否则需匹配牌面值，
                  且未被打的攻击牌不能达到防守方手牌数
        防守阶段: 能打过第一张未被打的攻击牌的手牌

        返回空列表表示只能 过 (攻击) 或 接牌 (防守)
        """
        if self.phase == Phase.ATTACK:
            hand = self.hands[self.attacker]
            if not self.board:
                return list(hand)
            if not RuleEngine.can_add_attack(self.board, len(self.hands[self.defender])):
                return []
            return RuleEngine.valid_attack_cards(hand, self.board)

        if self.phase == Phase.DEFEND:
            idx = first_undefended_index(self.board)
            if idx is None:
                return []
            return RuleEngine.valid_defense_cards(
                self.hands[self.defender], self.board[idx].attack, self.trump_suit
            )

        return []

    def is_legal(self, card: Optional[Card]) -> bool:
        """
        检查动作是否合法

        None (过 / 接牌) 在防守阶段总是合法；
        攻击阶段牌桌非空、或无牌可出时合法
        """
        if self.is_finished:
            return False
        legal = self.get_legal_actions()
        if card is None:
            if self.phase == Phase.DEFEND:
                return True
            return bool(self.board) or not legal
        return card in legal

    def with_move(self, card: Optional[Card]) -> 'MatchState':
        """
        执行动作后的新状态

        Args:
            card: 出的牌，None 表示 过 (攻击) 或 接牌 (防守)

        Returns:
            新状态

        Raises:
            IllegalMoveRequested: 动作不在合法动作中
        """
        if not self.is_legal(card):
            raise IllegalMoveRequested(
                f"Illegal move {card} for player {self.current_player} in phase {self.phase.value}"
            )

        if self.phase == Phase.ATTACK:
            if card is None:
                # 全部已被打 (或无牌可出): 进攻结束，防守成功
                return RuleEngine.resolve_round(self, defender_took=False)

            hands = list(self.hands)
            hands[self.attacker] = tuple(c for c in hands[self.attacker] if c != card)
            return replace(
                self,
                hands=tuple(hands),
                board=self.board + (TableEntry(attack=card),),
                phase=Phase.DEFEND,
                step_count=self.step_count + 1,
            )

        # 防守阶段
        if card is None:
            return RuleEngine.resolve_round(self, defender_took=True)

        idx = first_undefended_index(self.board)
        board = list(self.board)
        board[idx] = board[idx].with_defense(card)
        board = tuple(board)

        hands = list(self.hands)
        hands[self.defender] = tuple(c for c in hands[self.defender] if c != card)

        return replace(
            self,
            hands=tuple(hands),
            board=board,
            phase=Phase.ATTACK if all_defended(board) else Phase.DEFEND,
            step_count=self.step_count + 1,
        )

    def to_dict(self) -> dict:
        """存储边界的快照格式"""
        return {
            "hands": [[c.card_id for c in hand] for hand in self.hands],
            "deck_remaining": self.deck_remaining,
            "trump_suit": self.trump_suit.value,
            "attacker": self.attacker,
            "defender": self.defender,
            "board": [entry.to_dict() for entry in self.board],
            "phase": self.phase.value,
            "step_count": self.step_count,
        }


# =============================================================================
# 对局驱动 API
# =============================================================================

def new_match(
    player_count: int = 2,
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> MatchState:
    """创建新对局"""
    return MatchState.initial(player_count=player_count, seed=seed, rng=rng)


def legal_moves(state: MatchState) -> List[Card]:
    """当前玩家的合法出牌"""
    return state.get_legal_actions()


def apply_move(state: MatchState, card: Optional[Card]) -> MatchState:
    """执行动作，返回新状态 (结束时 phase == FINISHED)"""
    return state.with_move(card)


def check_conservation(state: MatchState) -> bool:
    """36 张牌既不多也不少"""
    cards = state.all_cards()
    return len(cards) == DECK_SIZE and len(set(cards)) == DECK_SIZE
