"""完整对局测试"""
import asyncio
import random
from itertools import product

import pytest

from ai.engine import DecisionEngine
from ai.knowledge import ATTACK, DEFENSE
from ai.stores import InMemoryKnowledgeStore, InMemoryTacticStore
from core.rules import RuleEngine
from core.state import Phase, check_conservation, new_match
from evaluation import Arena, EngineAgent, make_tier_agents
from training import LearningConfig, TacticLearner

MAX_MOVES = 1000
TIERS = ["easy", "medium", "hard", "expert"]


def play_out(engines, seed):
    """让引擎对战到结束，逐步检查不变量"""
    state = new_match(len(engines), seed=seed)
    while not state.is_finished and state.step_count < MAX_MOVES:
        player = state.current_player
        card = engines[player].decide(state)
        assert state.is_legal(card)
        state = state.with_move(card)
        assert check_conservation(state)
        if state.phase != Phase.FINISHED:
            assert state.attacker != state.defender
    return state


class TestFullMatches:
    """各难度组合的完整对局"""

    @pytest.mark.parametrize("first,second", list(product(TIERS, TIERS)))
    def test_two_player_tiers(self, first, second):
        engines = [
            DecisionEngine(first, rng=random.Random(1)),
            DecisionEngine(second, rng=random.Random(2)),
        ]
        state = play_out(engines, seed=11)
        assert state.is_finished
        assert state.loser in (None, 0, 1)

    @pytest.mark.parametrize("players", [3, 4, 5])
    def test_multiplayer(self, players):
        engines = [DecisionEngine(TIERS[p % 4], rng=random.Random(p)) for p in range(players)]
        state = play_out(engines, seed=players)
        assert state.is_finished
        if state.loser is not None:
            assert len(state.hands[state.loser]) > 0
            assert sum(1 for hand in state.hands if hand) == 1

    def test_finished_state_is_terminal(self):
        engines = [DecisionEngine("hard", rng=random.Random(3)) for _ in range(2)]
        state = play_out(engines, seed=5)
        assert state.is_finished
        assert state.deck_empty
        assert RuleEngine.check_termination(state.hands, state.deck_empty).over
        assert state.get_legal_actions() == []
        assert not state.is_legal(None)


class TestArenaWithLearning:
    """对战 + 战术学习端到端"""

    def test_tournament_then_learn(self):
        arena = Arena(record_history=True, rng=random.Random(4))
        agents = make_tier_agents(["expert", "easy"], rng=random.Random(4))
        results = arena.play_match(agents, n_games=3)

        tactics = InMemoryTacticStore()
        knowledge = InMemoryKnowledgeStore()
        learner = TacticLearner(tactics, knowledge, LearningConfig(retry_backoff=0))

        for result in results:
            asyncio.run(learner.learn_from_match(result, 0))

        learned = asyncio.run(tactics.list())
        records = asyncio.run(knowledge.list())
        finished = [r for r in results if not r.truncated]
        assert len(learned) >= min(1, len(finished))
        assert sum(t.times_used for t in learned) >= len(finished)
        assert all(r.decision_type in (ATTACK, DEFENSE) for r in records)

        # 学到的战术可以直接喂回决策引擎
        engine = asyncio.run(DecisionEngine.from_stores("expert", tactics, knowledge, rng=random.Random(0)))
        rematch = Arena(rng=random.Random(6)).play_match(
            [EngineAgent(engine, name="learned"), agents[1]], n_games=2
        )
        assert len(rematch) == 2
        assert all(r.truncated or r.loser in (None, 0, 1) for r in rematch)
