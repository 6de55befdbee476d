"""
规则引擎 - 压牌判定、合法出牌、发牌补牌、回合结算、终局检测

除 resolve_round 外所有方法都是纯函数，无状态
"""
from typing import List, NamedTuple, Optional, Sequence, Tuple, TYPE_CHECKING
from dataclasses import replace

from .cards import Card, Suit, HAND_SIZE, sort_cards
from .table import Board, board_cards, board_ranks, undefended

if TYPE_CHECKING:
    from .state import MatchState

Hands = Tuple[Tuple[Card, ...], ...]


class Termination(NamedTuple):
    """终局检测结果"""
    over: bool
    loser: Optional[int] = None  # 最后持牌者 (杜拉克)，None 表示平局或未结束


class RuleEngine:
    """
    杜拉克规则引擎

    只提供合法性判定与状态推进，不负责拒绝非法输入；
    非法动作由调用方 (MatchState.with_move) 拦截
    """

    @staticmethod
    def can_beat(attack: Card, defense: Card, trump: Suit) -> bool:
        """
        检查防守牌能否打过攻击牌

        - 将牌可以打任何非将牌
        - 同花色大牌打小牌
        - 非将牌永远打不过将牌
        """
        if defense.suit == trump and attack.suit != trump:
            return True
        if defense.suit == attack.suit:
            return defense.rank > attack.rank
        return False

    @staticmethod
    def valid_attack_cards(hand: Sequence[Card], board: Board) -> List[Card]:
        """
        可以出的攻击牌

        牌桌为空时任意出牌，否则只能出牌桌上已有的牌面值
        """
        if not board:
            return list(hand)
        ranks = board_ranks(board)
        return [card for card in hand if card.rank in ranks]

    @staticmethod
    def valid_defense_cards(hand: Sequence[Card], attack_card: Card, trump: Suit) -> List[Card]:
        """能打过 attack_card 的手牌"""
        return [card for card in hand if RuleEngine.can_beat(attack_card, card, trump)]

    @staticmethod
    def can_add_attack(board: Board, defender_hand_size: int) -> bool:
        """未被打的攻击牌数量不能达到防守方手牌数"""
        return len(undefended(board)) < defender_hand_size

    @staticmethod
    def deal_initial_hands(
        deck: Sequence[Card],
        player_count: int,
        hand_size: int = HAND_SIZE,
    ) -> Tuple[Hands, Tuple[Card, ...], Card]:
        """
        发牌

        从牌堆末尾轮流发牌，每轮每人一张，共 hand_size 轮；
        牌堆底部的一张作为亮将牌保留，最后才被摸走

        Args:
            deck: 洗好的牌 (末尾为牌堆顶)
            player_count: 玩家数 (2-5)
            hand_size: 每人手牌数

        Returns:
            (手牌, 剩余牌堆 (不含亮将牌), 亮将牌)
        """
        if not 2 <= player_count <= 5:
            raise ValueError(f"player_count must be between 2 and 5, got {player_count}")
        if len(deck) <= player_count * hand_size:
            raise ValueError("Not enough cards to deal")

        remaining = list(deck)
        hands: List[List[Card]] = [[] for _ in range(player_count)]
        for _ in range(hand_size):
            for p in range(player_count):
                hands[p].append(remaining.pop())

        trump_card = remaining[0]
        return tuple(sort_cards(h) for h in hands), tuple(remaining[1:]), trump_card

    @staticmethod
    def determine_first_attacker(hands: Sequence[Sequence[Card]], trump: Suit) -> int:
        """
        最小将牌的持有者先攻

        无人持有将牌时返回 0
        """
        lowest_rank = None
        attacker = 0
        for idx, hand in enumerate(hands):
            for card in hand:
                if card.suit == trump and (lowest_rank is None or card.rank < lowest_rank):
                    lowest_rank = card.rank
                    attacker = idx
        return attacker

    @staticmethod
    def refill_hands(
        hands: Sequence[Sequence[Card]],
        deck: Sequence[Card],
        start: int,
        hand_size: int = HAND_SIZE,
    ) -> Tuple[Hands, Tuple[Card, ...]]:
        """
        补牌

        从 start 开始轮流补牌，直到补满 hand_size 或牌堆耗尽

        Returns:
            (新手牌, 剩余牌堆)
        """
        remaining = list(deck)
        new_hands = [list(h) for h in hands]
        n = len(new_hands)

        for offset in range(n):
            idx = (start + offset) % n
            while len(new_hands[idx]) < hand_size and remaining:
                new_hands[idx].append(remaining.pop())

        return tuple(sort_cards(h) for h in new_hands), tuple(remaining)

    @staticmethod
    def check_termination(hands: Sequence[Sequence[Card]], deck_empty: bool) -> Termination:
        """
        终局检测

        只在牌堆耗尽后判断: 至多一人还有手牌即结束，
        剩下的那位是杜拉克；全部出完为平局
        """
        if not deck_empty:
            return Termination(over=False)

        holding = [i for i, hand in enumerate(hands) if hand]
        if len(holding) <= 1:
            return Termination(over=True, loser=holding[0] if holding else None)
        return Termination(over=False)

    @staticmethod
    def next_active(hands: Sequence[Sequence[Card]], start: int, skip: Optional[int] = None) -> Optional[int]:
        """从 start 开始 (含) 第一个仍有手牌且不是 skip 的玩家"""
        n = len(hands)
        for offset in range(n):
            idx = (start + offset) % n
            if idx != skip and hands[idx]:
                return idx
        return None

    @staticmethod
    def resolve_round(state: 'MatchState', defender_took: bool) -> 'MatchState':
        """
        回合结算

        1. 接牌: 防守方收下牌桌上所有牌；否则牌桌进入弃牌堆
        2. 从攻击方开始补牌 (亮将牌最后被摸走)
        3. 终局检测
        4. 轮换: 防守成功则防守方成为攻击方；
           接牌则攻击方继续进攻 (已出完时由接牌者之后的玩家进攻)，
           防守方之后的下一位玩家防守

        Args:
            state: 当前状态
            defender_took: 防守方是否接牌

        Returns:
            新状态 (可能已结束)
        """
        from .state import Phase

        hands = [list(h) for h in state.hands]
        cards = board_cards(state.board)
        discard = state.discard

        if defender_took:
            hands[state.defender].extend(cards)
        else:
            discard = discard + tuple(cards)

        refilled, pile = RuleEngine.refill_hands(hands, state.draw_pile, state.attacker)

        # 牌堆底部是亮将牌
        trump_card = pile[0] if pile else None
        deck = pile[1:]

        termination = RuleEngine.check_termination(refilled, deck_empty=not pile)
        if termination.over:
            return replace(
                state,
                hands=refilled,
                deck=deck,
                trump_card=trump_card,
                board=(),
                discard=discard,
                phase=Phase.FINISHED,
                step_count=state.step_count + 1,
                loser=termination.loser,
            )

        if defender_took and refilled[state.attacker]:
            attacker = state.attacker
            defender = RuleEngine.next_active(refilled, state.defender + 1, skip=attacker)
        elif defender_took:
            # 攻击方已出完: 接牌者之后的玩家进攻
            attacker = RuleEngine.next_active(refilled, state.defender + 1, skip=state.defender)
            defender = RuleEngine.next_active(refilled, attacker + 1, skip=attacker)
        else:
            attacker = RuleEngine.next_active(refilled, state.defender)
            defender = RuleEngine.next_active(refilled, attacker + 1, skip=attacker)

        return replace(
            state,
            hands=refilled,
            deck=deck,
            trump_card=trump_card,
            attacker=attacker,
            defender=defender,
            board=(),
            discard=discard,
            phase=Phase.ATTACK,
            step_count=state.step_count + 1,
        )
