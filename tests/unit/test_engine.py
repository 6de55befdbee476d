"""决策引擎与难度档位测试"""
import asyncio
import logging
import random

import pytest

from ai.config import Difficulty, EngineConfig
from ai.context import DecisionContext
from ai.engine import DecisionEngine, ai_decide
from ai.policies import POLICIES, ExpertPolicy, HardPolicy
from ai.stores import ExternalStoreUnavailable, InMemoryKnowledgeStore, InMemoryTacticStore, TacticStore
from ai.tactics import ScenarioFilter, Tactic, TacticAction
from core.cards import Suit, str_to_card, str_to_cards
from core.state import IllegalMoveRequested, MatchState, Phase, apply_move, new_match
from core.table import TableEntry

ALL_TIERS = list(Difficulty)


def C(s):
    return str_to_card(s)


def CS(s):
    return list(str_to_cards(s))


class AlwaysRandom(random.Random):
    def random(self):
        return 0.0


def ctx(deck_remaining=10, opponent_hand_size=6, board=(), trump=Suit.SPADES):
    return DecisionContext(trump, deck_remaining, opponent_hand_size, board=tuple(board))


def policy(difficulty, config=None, rng=None, **kwargs):
    engine = DecisionEngine(difficulty, config=config, rng=rng or random.Random(0), **kwargs)
    return engine.policy


class TestDifficulty:
    """难度解析测试"""

    def test_parse(self):
        assert Difficulty.parse("HARD") == Difficulty.HARD
        assert Difficulty.parse(Difficulty.EASY) == Difficulty.EASY

    @pytest.mark.parametrize("legacy", ["aha", "champion"])
    def test_legacy_names(self, legacy):
        assert Difficulty.parse(legacy) == Difficulty.EXPERT

    def test_unknown(self):
        with pytest.raises(ValueError):
            Difficulty.parse("godlike")

    def test_registry(self):
        assert set(POLICIES) == set(Difficulty)


class TestEngineConfig:
    """EngineConfig 测试"""

    def test_tier_override_keeps_other_constants(self):
        config = EngineConfig.from_dict({"tiers": {"easy": {"take_prob": 0.3}}})
        assert config.tier(Difficulty.EASY).take_prob == 0.3
        assert config.tier(Difficulty.EASY).worst_choice_prob == 0.4

    def test_nested_override(self):
        config = EngineConfig.from_dict({"expert": {"duplicate_bonus": 3.0, "bogus": 1}})
        assert config.expert.duplicate_bonus == 3.0
        assert config.expert.opening_bonus == 5.0

    def test_continue_prob_increases_with_tier(self):
        config = EngineConfig()
        probs = [config.tier(d).continue_prob for d in ALL_TIERS]
        assert probs == sorted(probs)


class TestSelectAttack:
    """进攻选择测试"""

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_returns_valid_card(self, difficulty):
        hand = CS("6♥ 9♦ K♣ 7♠ 9♠")
        board = (TableEntry(C("9♥"), C("10♥")),)
        card = policy(difficulty).select_attack(hand, board, ctx(board=board))
        assert card in (C("9♦"), C("9♠"))

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_no_valid_returns_none(self, difficulty):
        board = (TableEntry(C("9♥"), C("10♥")),)
        assert policy(difficulty).select_attack(CS("6♥ K♣"), board, ctx(board=board)) is None

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_defender_without_cards_gets_no_addition(self, difficulty):
        board = (TableEntry(C("6♥"), C("7♥")),)
        context = ctx(opponent_hand_size=0, board=board)
        assert policy(difficulty).select_attack(CS("6♠"), board, context) is None

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_undefended_board_gets_no_addition(self, difficulty):
        board = (TableEntry(C("6♥")),)
        assert policy(difficulty).select_attack(CS("6♠ 9♦"), board, ctx(board=board)) is None

    def test_easy_worst_choice(self):
        config = EngineConfig.from_dict({"tiers": {"easy": {"worst_choice_prob": 1.0}}})
        assert policy("easy", config).select_attack(CS("6♥ K♣ 7♠"), (), ctx()) == C("7♠")

    def test_medium_best_choice(self):
        config = EngineConfig.from_dict({"tiers": {"medium": {"best_choice_prob": 1.0}}})
        assert policy("medium", config).select_attack(CS("K♣ 6♠ 8♥"), (), ctx()) == C("8♥")

    def test_medium_best_half(self):
        config = EngineConfig.from_dict({"tiers": {"medium": {"best_choice_prob": 0.0}}})
        p = policy("medium", config)
        for _ in range(20):
            assert p.select_attack(CS("6♥ 7♥ A♣ 6♠"), (), ctx()) in (C("6♥"), C("7♥"))

    def test_expert_opening_low_non_trump(self):
        card = policy("expert").select_attack(CS("6♥ A♠ K♦ Q♣"), (), ctx(deck_remaining=24))
        assert card == C("6♥")

    def test_expert_tactic_overrides_heuristic(self):
        tactic = Tactic(
            name="push",
            scenario=ScenarioFilter("attack", (3, 6), (10, 30)),
            action=TacticAction("aggressive_start", "high_trumps", 0.9),
            success_rate=0.9,
            confidence=0.9,
        )
        p = policy("expert", rng=AlwaysRandom(), tactics=[tactic])
        assert p.select_attack(CS("6♥ 8♦ K♣ 10♠"), (), ctx(deck_remaining=20)) == C("K♣")


class TestSelectDefense:
    """防守选择测试"""

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_no_defense_takes(self, difficulty):
        # 将牌红桃，手里既无更大的黑桃也无将牌
        p = policy(difficulty)
        assert p.select_defense(CS("6♠ 8♦"), C("7♠"), ctx(trump=Suit.HEARTS)) is None

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_defense_beats_attack(self, difficulty):
        hand = CS("8♥ A♥ 7♠ 6♦")
        card = policy(difficulty).select_defense(hand, C("7♥"), ctx())
        if card is not None:
            assert card in (C("8♥"), C("A♥"), C("7♠"))

    def test_medium_lowest_strength(self):
        config = EngineConfig.from_dict({"tiers": {"medium": {"take_prob": 0.0}}})
        assert policy("medium", config).select_defense(CS("A♥ 8♥ 7♠"), C("7♥"), ctx()) == C("8♥")

    def test_easy_always_take(self):
        config = EngineConfig.from_dict({"tiers": {"easy": {"take_prob": 1.0}}})
        assert policy("easy", config).select_defense(CS("8♥"), C("7♥"), ctx()) is None

    def test_hard_overspend_takes(self):
        hand = CS("A♠ 7♦ 8♦ 9♦ 10♦")
        assert policy("hard").select_defense(hand, C("6♥"), ctx(deck_remaining=10)) is None

    def test_hard_overspend_exempt_when_deck_empty(self):
        hand = CS("A♠ 7♦ 8♦ 9♦ 10♦")
        assert policy("hard").select_defense(hand, C("6♥"), ctx(deck_remaining=0)) == C("A♠")

    def test_hard_small_hand_no_overspend(self):
        assert policy("hard").select_defense(CS("A♠ 7♦"), C("6♥"), ctx(deck_remaining=10)) == C("A♠")

    def test_expert_overspend_takes(self):
        hand = CS("A♠ 7♦ 8♦ 9♦ 10♦")
        assert policy("expert").select_defense(hand, C("6♥"), ctx(deck_remaining=10)) is None

    def test_expert_cheap_defense(self):
        hand = CS("7♥ A♥ 6♠ 9♣")
        assert policy("expert").select_defense(hand, C("6♥"), ctx(deck_remaining=20)) == C("7♥")

    def test_expert_conservative_tactic_takes(self):
        tactic = Tactic(
            name="hold",
            scenario=ScenarioFilter("defend", (3, 6), (10, 30)),
            action=TacticAction("conservative", "any_valid", 0.3),
            success_rate=0.9,
            confidence=0.9,
        )
        p = policy("expert", rng=AlwaysRandom(), tactics=[tactic])
        assert p.select_defense(CS("Q♥ K♥ 6♦ 6♣"), C("J♥"), ctx(deck_remaining=20)) is None


class TestShouldContinue:
    """继续进攻测试"""

    board = (TableEntry(C("6♥"), C("7♥")),)

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_no_valid(self, difficulty):
        p = policy(difficulty)
        assert not p.should_continue_attacking(CS("9♦ K♣"), self.board, 4, ctx(board=self.board))

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_undefended(self, difficulty):
        board = (TableEntry(C("6♥")),)
        p = policy(difficulty)
        assert not p.should_continue_attacking(CS("6♦ K♣"), board, 4, ctx(board=board))

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_defender_empty(self, difficulty):
        p = policy(difficulty)
        assert not p.should_continue_attacking(CS("6♦ K♣"), self.board, 0, ctx(board=self.board))

    def test_always_continue(self):
        config = EngineConfig.from_dict({"tiers": {"easy": {"continue_prob": 1.0}}})
        p = policy("easy", config)
        assert p.should_continue_attacking(CS("6♦ K♣"), self.board, 4, ctx(board=self.board))

    def test_low_value_gate(self):
        config = EngineConfig.from_dict({"tiers": {"hard": {"continue_prob": 1.0, "low_value_threshold": 5}}})
        p = policy("hard", config)
        assert not p.should_continue_attacking(CS("6♦ K♣"), self.board, 4, ctx(board=self.board))

    def test_expert_short_hands_continue(self):
        p = policy("expert", rng=random.Random(0))
        assert p.should_continue_attacking(CS("6♦ 9♣"), self.board, 2, ctx(deck_remaining=3, board=self.board))

    def test_expert_low_deck_caps_board(self):
        board = tuple(TableEntry(C(a), C(d)) for a, d in [("6♥", "7♥"), ("6♣", "7♣"), ("7♦", "8♦")])
        p = policy("expert")
        assert not p.should_continue_attacking(CS("6♦ 9♣ 10♣"), board, 3, ctx(deck_remaining=4, board=board))
        assert p.should_continue_attacking(CS("6♦ 9♣ 10♣"), board, 5, ctx(deck_remaining=4, board=board))


class TestDecide:
    """decide 测试"""

    def test_finished_raises(self):
        state = MatchState(
            hands=((), CS("6♥")),
            deck=(),
            trump_card=None,
            trump_suit=Suit.SPADES,
            attacker=0,
            defender=1,
            phase=Phase.FINISHED,
            loser=1,
        )
        with pytest.raises(IllegalMoveRequested):
            DecisionEngine("easy").decide(state)

    def test_no_defense_scenario(self):
        state = MatchState(
            hands=(CS("7♠ 9♦"), CS("6♠ 8♦")),
            deck=(),
            trump_card=None,
            trump_suit=Suit.HEARTS,
            attacker=0,
            defender=1,
            board=(TableEntry(C("7♠")),),
            phase=Phase.DEFEND,
        )
        for difficulty in ALL_TIERS:
            move = DecisionEngine(difficulty, rng=random.Random(0)).decide(state)
            assert move is None
            after = apply_move(state, move)
            assert C("7♠") in after.hands[1]

    @pytest.mark.parametrize("difficulty", ALL_TIERS)
    def test_moves_are_legal(self, difficulty):
        engine = DecisionEngine(difficulty, rng=random.Random(1))
        for seed in range(3):
            state = new_match(2, seed=seed)
            for _ in range(60):
                if state.is_finished:
                    break
                move = engine.decide(state)
                assert state.is_legal(move)
                state = apply_move(state, move)

    def test_ai_decide(self):
        state = new_match(3, seed=4)
        move = ai_decide(state, "champion", rng=random.Random(0))
        assert move in state.get_legal_actions()

    def test_repr(self):
        assert "expert" in repr(DecisionEngine("expert"))


class DownStore(TacticStore):
    """始终不可用的战术库"""

    def __init__(self):
        self.calls = 0

    async def list(self):
        self.calls += 1
        raise ExternalStoreUnavailable("down")

    async def create(self, tactic):
        raise ExternalStoreUnavailable("down")

    async def update(self, tactic_id, fields):
        raise ExternalStoreUnavailable("down")


class TestFromStores:
    """从外部存储构建测试"""

    def test_loads_snapshots(self):
        tactic = Tactic("t", ScenarioFilter.around("attack", 6, 30), TacticAction("aggressive_start"))
        engine = asyncio.run(DecisionEngine.from_stores(
            "expert",
            tactic_store=InMemoryTacticStore([tactic]),
            knowledge_store=InMemoryKnowledgeStore(),
        ))
        assert len(engine.tactics.tactics) == 1
        assert len(engine.knowledge) == 0

    def test_degrades_when_unavailable(self, caplog):
        store = DownStore()
        with caplog.at_level(logging.WARNING, logger="ai.engine"):
            engine = asyncio.run(DecisionEngine.from_stores("expert", tactic_store=store, backoff=0))
        assert store.calls == 3
        assert engine.tactics.tactics == []
        assert "unavailable" in caplog.text
        assert engine.decide(new_match(2, seed=0)) is not None

    def test_no_stores(self):
        engine = asyncio.run(DecisionEngine.from_stores("hard"))
        assert isinstance(engine.policy, HardPolicy)
        assert not isinstance(engine.policy, ExpertPolicy)
