"""
观察空间编码

将对局状态转换为神经网络可用的特征表示
"""
from dataclasses import dataclass
from typing import Dict, List, Optional
import numpy as np

from core.cards import Card, FULL_DECK, DECK_SIZE, SUITS, cards_to_array
from core.state import MatchState

MAX_PLAYERS = 5

# 动作空间: 36 张牌 + 过/接牌
PASS_ACTION = DECK_SIZE
NUM_ACTIONS = DECK_SIZE + 1


@dataclass
class Observation:
    """
    结构化观测

    Attributes:
        hand: 自己的手牌 (36,)
        board_attack: 牌桌上的攻击牌 (36,)
        board_defense: 牌桌上的防守牌 (36,)
        discard: 弃牌堆 (36,)
        trump: 将牌花色 one-hot (4,)
        trump_card: 亮将牌 (36,)，已被摸走时全 0
        role: [是攻击方, 是防守方] (2,)
        cards_left: 各玩家手牌数 / 36，从自己开始 (5,)
        deck: 剩余可摸牌数 / 36 (1,)
        legal_mask: 合法动作掩码 (37,)
    """
    hand: np.ndarray
    board_attack: np.ndarray
    board_defense: np.ndarray
    discard: np.ndarray
    trump: np.ndarray
    trump_card: np.ndarray
    role: np.ndarray
    cards_left: np.ndarray
    deck: np.ndarray
    legal_mask: np.ndarray

    def to_dict(self) -> Dict[str, np.ndarray]:
        return {
            "hand": self.hand,
            "board_attack": self.board_attack,
            "board_defense": self.board_defense,
            "discard": self.discard,
            "trump": self.trump,
            "trump_card": self.trump_card,
            "role": self.role,
            "cards_left": self.cards_left,
            "deck": self.deck,
            "legal_mask": self.legal_mask,
        }

    def to_flat_array(self) -> np.ndarray:
        """
        展平为单一向量 (不含 legal_mask)

        特征维度: 36 * 5 + 4 + 2 + 5 + 1 = 192
        """
        return np.concatenate([
            self.hand,
            self.board_attack,
            self.board_defense,
            self.discard,
            self.trump,
            self.trump_card,
            self.role,
            self.cards_left,
            self.deck,
        ])


class ActionEncoder:
    """
    动作编码

    牌的索引 0-35 即动作索引，36 表示 过 (攻击) / 接牌 (防守)
    """

    @property
    def num_actions(self) -> int:
        return NUM_ACTIONS

    def encode(self, card: Optional[Card]) -> int:
        return PASS_ACTION if card is None else card.index

    def decode(self, idx: int) -> Optional[Card]:
        if not 0 <= idx < NUM_ACTIONS:
            raise ValueError(f"Invalid action index: {idx}. Valid range: 0-{NUM_ACTIONS - 1}")
        return None if idx == PASS_ACTION else FULL_DECK[idx]

    def get_legal_action_indices(self, state: MatchState) -> List[int]:
        indices = [card.index for card in state.get_legal_actions()]
        if state.is_legal(None):
            indices.append(PASS_ACTION)
        return indices

    def build_legal_mask(self, state: MatchState) -> np.ndarray:
        mask = np.zeros(NUM_ACTIONS, dtype=np.float32)
        if state.is_finished:
            return mask
        mask[self.get_legal_action_indices(state)] = 1.0
        return mask


class ObservationBuilder:
    """
    观测构建器

    只编码 perspective 玩家可见的信息
    """

    def __init__(self, encoder: Optional[ActionEncoder] = None):
        self.encoder = encoder or ActionEncoder()

    def build(self, state: MatchState, perspective: Optional[int] = None) -> Observation:
        """
        Args:
            state: 对局状态
            perspective: 视角玩家 (默认为当前行动玩家)
        """
        if perspective is None:
            perspective = state.current_player

        attacks = [entry.attack for entry in state.board]
        defenses = [entry.defense for entry in state.board if entry.defense is not None]

        trump = np.zeros(len(SUITS), dtype=np.float32)
        trump[SUITS.index(state.trump_suit)] = 1.0

        role = np.array([
            float(perspective == state.attacker),
            float(perspective == state.defender),
        ], dtype=np.float32)

        mask = (
            self.encoder.build_legal_mask(state)
            if perspective == state.current_player
            else np.zeros(NUM_ACTIONS, dtype=np.float32)
        )

        return Observation(
            hand=cards_to_array(state.hands[perspective]),
            board_attack=cards_to_array(attacks),
            board_defense=cards_to_array(defenses),
            discard=cards_to_array(state.discard),
            trump=trump,
            trump_card=cards_to_array([state.trump_card] if state.trump_card else []),
            role=role,
            cards_left=self._encode_cards_left(state, perspective),
            deck=np.array([state.deck_remaining / DECK_SIZE], dtype=np.float32),
            legal_mask=mask,
        )

    @staticmethod
    def _encode_cards_left(state: MatchState, perspective: int) -> np.ndarray:
        cards_left = np.zeros(MAX_PLAYERS, dtype=np.float32)
        n = state.player_count
        for offset in range(n):
            cards_left[offset] = len(state.hands[(perspective + offset) % n]) / DECK_SIZE
        return cards_left


_encoder: Optional[ActionEncoder] = None


def get_action_encoder() -> ActionEncoder:
    global _encoder
    if _encoder is None:
        _encoder = ActionEncoder()
    return _encoder
