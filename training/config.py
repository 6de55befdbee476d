"""
学习配置

对局后战术学习与经验记录的参数
"""
from dataclasses import dataclass


@dataclass
class LearningConfig:
    """
    战术学习配置

    Attributes:
        win_confidence_delta: 获胜后置信度增量
        loss_confidence_delta: 失败后置信度减量
        min_confidence: 置信度下限
        max_confidence: 置信度上限
        initial_confidence: 新战术的初始置信度
        initial_win_rate: 从胜局学到的战术初始成功率
        initial_loss_rate: 从败局学到的战术初始成功率
        similarity_threshold: 相似度超过该值视为同一战术
        max_tactics: 战术库容量上限 (达到后不再新建)
        opening_min_moves: 对局步数达到该值才学习开局
        midgame_min_moves: 对局步数达到该值才学习中局
        retry_attempts: 存储写入重试次数
        retry_backoff: 重试退避基数 (秒)
        record_knowledge: 是否同时写入经验记录
        win_reward: 胜局中每步动作的奖励
        loss_reward: 败局中每步动作的奖励
    """
    # 置信度
    win_confidence_delta: float = 0.12
    loss_confidence_delta: float = 0.08
    min_confidence: float = 0.01
    max_confidence: float = 0.99
    initial_confidence: float = 0.3
    initial_win_rate: float = 0.6
    initial_loss_rate: float = 0.4

    # 去重
    similarity_threshold: float = 0.7
    max_tactics: int = 50

    # 对局分段
    opening_min_moves: int = 3
    midgame_min_moves: int = 8

    # 存储
    retry_attempts: int = 3
    retry_backoff: float = 0.2

    # 经验记录
    record_knowledge: bool = True
    win_reward: float = 0.8
    loss_reward: float = -0.5

    @classmethod
    def from_dict(cls, d: dict) -> 'LearningConfig':
        valid_keys = cls.__dataclass_fields__.keys()
        filtered = {k: v for k, v in d.items() if k in valid_keys}
        return cls(**filtered)
