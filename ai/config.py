"""
AI 配置

定义各难度档位的策略常数与启发式权重
"""
from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Dict, Optional
from enum import Enum


class Difficulty(Enum):
    """难度档位"""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"

    @classmethod
    def parse(cls, value) -> 'Difficulty':
        """解析难度，兼容旧名称 aha / champion"""
        if isinstance(value, cls):
            return value
        name = str(value).lower()
        name = LEGACY_DIFFICULTY_NAMES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown difficulty: {value!r}") from None


LEGACY_DIFFICULTY_NAMES: Dict[str, str] = {
    "aha": "expert",
    "champion": "expert",
}


@dataclass
class TierConfig:
    """
    难度档位常数

    Attributes:
        worst_choice_prob: 进攻时故意出最差牌的概率
        take_prob: 能防却选择接牌的概率
        continue_prob: 继续进攻的概率
        best_choice_prob: 选择最优排序结果的概率
        low_value_threshold: 判定 "低价值牌" 的阈值 (继续进攻的前提)
        overspend_margin: 防守牌价值超过攻击牌价值多少视为浪费
        overspend_min_hand: 手牌多于该数时才考虑浪费判定
    """
    worst_choice_prob: float = 0.0
    take_prob: float = 0.0
    continue_prob: float = 0.5
    best_choice_prob: float = 1.0
    low_value_threshold: Optional[float] = None
    overspend_margin: Optional[float] = None
    overspend_min_hand: int = 4


# 每档一套固定常数，继续进攻概率从 easy 到 expert 递增
DEFAULT_TIERS: Dict[Difficulty, TierConfig] = {
    Difficulty.EASY: TierConfig(
        worst_choice_prob=0.4,
        take_prob=0.2,
        continue_prob=0.3,
    ),
    Difficulty.MEDIUM: TierConfig(
        take_prob=0.1,
        continue_prob=0.5,
        best_choice_prob=0.7,
        low_value_threshold=15,
    ),
    Difficulty.HARD: TierConfig(
        continue_prob=0.7,
        low_value_threshold=12,
        overspend_margin=15,
        overspend_min_hand=4,
    ),
    Difficulty.EXPERT: TierConfig(
        continue_prob=0.85,
        low_value_threshold=12,
        overspend_margin=10,
        overspend_min_hand=3,
    ),
}


@dataclass
class CardValueWeights:
    """
    单张牌价值 (evaluate_card) 的权重

    Attributes:
        trump_premium: 将牌加成
        trump_conservation: 将牌保留系数
        aggressive_factor: 同点数牌的进攻加成
    """
    trump_premium: float = 20.0
    trump_conservation: float = 1.0
    aggressive_factor: float = 1.0


@dataclass
class PositionWeights:
    """
    局面评估权重

    Attributes:
        card_advantage: 手牌数优势 (对手 - 自己)
        trump: 每张将牌
        low_card: 每张低牌 (<= 8)
        high_card: 每张高牌 (>= 12)
        duplicate_rank: 每个重复点数
        endgame_multiplier: 残局放大系数
        endgame_hand_size: 残局判定的手牌上限
    """
    card_advantage: float = 1.5
    trump: float = 2.0
    low_card: float = 0.5
    high_card: float = 1.0
    duplicate_rank: float = 1.2
    endgame_multiplier: float = 2.0
    endgame_hand_size: int = 3


@dataclass
class ExpertWeights:
    """
    专家档启发式评分权重
    """
    # 进攻
    card_value: float = 0.5
    no_defense_bonus: float = 10.0
    knowledge_attack: float = 3.0
    duplicate_bonus: float = 2.0
    opening_bonus: float = 5.0
    opening_deck_min: int = 20
    early_trump_penalty: float = 6.0
    early_deck_min: int = 10
    position: float = 0.3

    # 防守
    waste_factor: float = 0.8
    defense_trump_penalty: float = 15.0
    knowledge_defense: float = 2.0
    rethrow_penalty: float = 3.0
    behind_endgame_bonus: float = 5.0
    take_margin: float = 10.0


@dataclass
class EndgameConfig:
    """
    残局求解器配置

    Attributes:
        max_cards: 双方手牌总数低于该值时启用
        node_budget: 精确搜索的节点上限
        exact_weight: 精确结果相对启发式的权重
        aggression: 手牌少于对手时出大牌的系数
        caution: 手牌多于对手时出小牌的系数
        trump_penalty: 非必要出将牌的扣分
        position: 局面评估的权重 (平局打破)
    """
    max_cards: int = 10
    node_budget: int = 20000
    exact_weight: float = 100.0
    aggression: float = 0.5
    caution: float = 0.3
    trump_penalty: float = 8.0
    position: float = 0.1


@dataclass
class TacticConfig:
    """
    战术匹配配置

    Attributes:
        hand_size_tolerance: 手牌数容差
        deck_tolerance: 剩余牌数容差
        min_success_rate: 最低成功率 (严格大于)
        min_confidence: 最低置信度
    """
    hand_size_tolerance: int = 2
    deck_tolerance: int = 10
    min_success_rate: float = 0.5
    min_confidence: float = 0.1


@dataclass
class KnowledgeConfig:
    """
    历史经验匹配配置
    """
    hand_size_tolerance: int = 2
    rank_tolerance: int = 2
    min_reward: float = 0.4
    max_situations: int = 10
    scale: float = 5.0


@dataclass
class EngineConfig:
    """决策引擎总配置"""
    tiers: Dict[Difficulty, TierConfig] = field(default_factory=lambda: dict(DEFAULT_TIERS))
    card_value: CardValueWeights = field(default_factory=CardValueWeights)
    position: PositionWeights = field(default_factory=PositionWeights)
    expert: ExpertWeights = field(default_factory=ExpertWeights)
    endgame: EndgameConfig = field(default_factory=EndgameConfig)
    tactics: TacticConfig = field(default_factory=TacticConfig)
    knowledge: KnowledgeConfig = field(default_factory=KnowledgeConfig)

    def tier(self, difficulty: Difficulty) -> TierConfig:
        return self.tiers.get(difficulty, DEFAULT_TIERS[difficulty])

    @classmethod
    def from_dict(cls, d: dict) -> 'EngineConfig':
        """
        从嵌套字典创建配置，未知键忽略

        Example:
            EngineConfig.from_dict({"expert": {"duplicate_bonus": 3.0},
                                    "tiers": {"easy": {"take_prob": 0.3}}})
        """
        config = cls()
        for f in fields(cls):
            if f.name not in d:
                continue
            value = d[f.name]
            if f.name == "tiers":
                for name, tier in value.items():
                    difficulty = Difficulty.parse(name)
                    valid_keys = TierConfig.__dataclass_fields__.keys()
                    overrides = {k: v for k, v in tier.items() if k in valid_keys}
                    config.tiers[difficulty] = replace(config.tier(difficulty), **overrides)
                continue
            current = getattr(config, f.name)
            if is_dataclass(current):
                valid_keys = current.__dataclass_fields__.keys()
                filtered = {k: v for k, v in value.items() if k in valid_keys}
                setattr(config, f.name, type(current)(**filtered))
        return config
