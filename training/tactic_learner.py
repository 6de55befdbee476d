"""
对局后战术学习

根据胜负从对局中提炼开局、中局、残局战术，
与已有战术去重后更新统计或新建，写入外部存储
"""
from dataclasses import dataclass
from typing import List, Optional
import logging

from ai.knowledge import ATTACK, DEFENSE, KnowledgeRecord
from ai.stores import ExternalStoreUnavailable, KnowledgeStore, TacticStore, call_with_retry
from ai.tactics import PHASE_ATTACK, PHASE_DEFEND, ScenarioFilter, Tactic, TacticAction, similarity
from core.state import Phase
from evaluation.arena import MatchResult

from .config import LearningConfig

logger = logging.getLogger(__name__)


@dataclass
class LearningReport:
    """一次学习的写入统计"""
    updated: int = 0
    created: int = 0
    recorded: int = 0
    dropped: int = 0


class TacticLearner:
    """
    战术学习器

    所有写入都带重试；重试用尽后丢弃并记录警告，不向调用方抛出

    Example:
        learner = TacticLearner(tactic_store, knowledge_store)
        report = await learner.learn_from_match(result, player=0)
    """

    def __init__(
        self,
        tactic_store: TacticStore,
        knowledge_store: Optional[KnowledgeStore] = None,
        config: Optional[LearningConfig] = None,
    ):
        self.tactic_store = tactic_store
        self.knowledge_store = knowledge_store
        self.config = config or LearningConfig()

    def derive_tactics(self, won: bool, move_count: int) -> List[Tactic]:
        """
        从一局的胜负提炼候选战术

        Args:
            won: 是否获胜 (不是杜拉克)
            move_count: 对局步数
        """
        cfg = self.config
        rate = cfg.initial_win_rate if won else cfg.initial_loss_rate

        def tactic(name, phase, hand_size, deck_remaining, action_type, preference, aggression):
            return Tactic(
                name=name,
                scenario=ScenarioFilter.around(phase, hand_size, deck_remaining, opponent_hand_size=hand_size),
                action=TacticAction(action_type, preference, aggression),
                success_rate=rate,
                confidence=cfg.initial_confidence,
                times_used=1,
                times_won=1 if won else 0,
            )

        tactics = []
        if move_count >= cfg.opening_min_moves:
            if won:
                tactics.append(tactic("Winning Opening", PHASE_ATTACK, 6, 30, "aggressive_start", "low_cards", 0.8))
            else:
                tactics.append(tactic("Failed Opening", PHASE_ATTACK, 6, 30, "defensive_start", "medium_cards", 0.4))

        if move_count >= cfg.midgame_min_moves:
            if won:
                tactics.append(tactic("Midgame Pressure", PHASE_ATTACK, 4, 15, "multi_attack", "duplicates", 0.9))
            else:
                tactics.append(tactic("Midgame Defense", PHASE_ATTACK, 4, 15, "conservative", "singles", 0.3))

        if won:
            tactics.append(tactic("Endgame Domination", PHASE_ATTACK, 2, 0, "trump_finish", "high_trumps", 1.0))
        else:
            tactics.append(tactic("Endgame Struggle", PHASE_DEFEND, 2, 0, "desperate_defense", "any_valid", 0.2))

        return tactics

    def updated_fields(self, tactic: Tactic, won: bool) -> dict:
        """已有战术在一局之后的新统计"""
        cfg = self.config
        times_used = tactic.times_used + 1
        times_won = tactic.times_won + (1 if won else 0)
        delta = cfg.win_confidence_delta if won else -cfg.loss_confidence_delta
        confidence = max(cfg.min_confidence, min(cfg.max_confidence, tactic.confidence + delta))
        return {
            "times_used": times_used,
            "times_won": times_won,
            "success_rate": times_won / times_used,
            "confidence": confidence,
        }

    async def _retry(self, operation, description: str):
        return await call_with_retry(
            operation,
            attempts=self.config.retry_attempts,
            backoff=self.config.retry_backoff,
            description=description,
        )

    async def learn(self, won: bool, move_count: int) -> LearningReport:
        """
        更新战术库

        每个候选战术: 找到第一个相似的已有战术则更新其统计；
        否则在库未满时新建 (每局最多新建一条)
        """
        report = LearningReport()
        try:
            existing = await self._retry(self.tactic_store.list, "tactic list")
        except ExternalStoreUnavailable as e:
            logger.warning(f"Tactic store unavailable, dropping learning for this match: {e}")
            report.dropped += 1
            return report

        for candidate in self.derive_tactics(won, move_count):
            similar = next(
                (t for t in existing if similarity(t, candidate) > self.config.similarity_threshold),
                None,
            )
            if similar is not None:
                fields = self.updated_fields(similar, won)
                try:
                    await self._retry(
                        lambda: self.tactic_store.update(similar.id, fields),
                        f"tactic update {similar.id}",
                    )
                    report.updated += 1
                except ExternalStoreUnavailable as e:
                    logger.warning(f"Dropping update of tactic '{similar.name}': {e}")
                    report.dropped += 1
                continue

            if len(existing) >= self.config.max_tactics:
                continue

            try:
                await self._retry(lambda: self.tactic_store.create(candidate), f"tactic create {candidate.name}")
                report.created += 1
                break
            except ExternalStoreUnavailable as e:
                logger.warning(f"Dropping new tactic '{candidate.name}': {e}")
                report.dropped += 1

        return report

    def knowledge_records(self, result: MatchResult, player: int) -> List[KnowledgeRecord]:
        """player 在这一局中每一步动作的经验记录"""
        won = result.won(player)
        reward = self.config.win_reward if won else self.config.loss_reward
        return [
            KnowledgeRecord(
                decision_type=ATTACK if move.phase == Phase.ATTACK else DEFENSE,
                hand_size=move.hand_size,
                card_played=move.card,
                reward=reward,
                was_successful=won,
                opponent_hand_size=move.opponent_hand_size,
                deck_remaining=move.deck_remaining,
                move_number=move.board_size + 1,
            )
            for move in result.history
            if move.player == player
        ]

    async def record_knowledge(self, result: MatchResult, player: int) -> LearningReport:
        report = LearningReport()
        if self.knowledge_store is None:
            return report

        for record in self.knowledge_records(result, player):
            try:
                await self._retry(lambda: self.knowledge_store.append(record), "knowledge append")
                report.recorded += 1
            except ExternalStoreUnavailable as e:
                logger.warning(f"Dropping knowledge record: {e}")
                report.dropped += 1
        return report

    async def learn_from_match(self, result: MatchResult, player: int) -> LearningReport:
        """
        从一局对战结果学习

        截断的对局没有胜负，不参与学习

        Args:
            result: 对局结果 (记录历史时可同时写入经验)
            player: 学习方的座位
        """
        if result.truncated:
            logger.info(f"Skipping truncated match (seed={result.seed})")
            return LearningReport()

        won = result.won(player)
        report = await self.learn(won, result.length)

        if self.config.record_knowledge and result.history:
            recorded = await self.record_knowledge(result, player)
            report.recorded += recorded.recorded
            report.dropped += recorded.dropped

        logger.info(
            f"Learned from match (won={won}): updated={report.updated}, created={report.created}, "
            f"recorded={report.recorded}, dropped={report.dropped}"
        )
        return report
