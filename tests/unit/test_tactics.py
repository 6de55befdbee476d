"""战术适配器测试"""
import random

import pytest

from ai.config import TacticConfig
from ai.context import DecisionContext
from ai.tactics import (
    NOT_APPLIED,
    ScenarioFilter,
    Tactic,
    TacticAction,
    TacticAdapter,
    similarity,
)
from core.cards import Suit, str_to_card, str_to_cards


def C(s):
    return str_to_card(s)


def CS(s):
    return list(str_to_cards(s))


class AlwaysRandom(random.Random):
    """random() 固定返回 0，战术总被执行"""

    def random(self):
        return 0.0


def make_tactic(
    name="t",
    phase="attack",
    hand=(4, 8),
    deck=(0, 30),
    action_type="aggressive_start",
    preference="any_valid",
    aggression=0.5,
    success_rate=0.8,
    confidence=0.9,
):
    return Tactic(
        name=name,
        scenario=ScenarioFilter(phase, hand, deck),
        action=TacticAction(action_type, preference, aggression),
        success_rate=success_rate,
        confidence=confidence,
    )


def context(deck_remaining=20, trump=Suit.SPADES):
    return DecisionContext(trump=trump, deck_remaining=deck_remaining, opponent_hand_size=6)


class TestScenarioFilter:
    """ScenarioFilter 测试"""

    def test_around_uses_tolerance(self):
        scenario = ScenarioFilter.around("attack", 6, 30)
        assert scenario.hand_size_range == (4, 8)
        assert scenario.deck_remaining_range == (20, 40)
        assert scenario.hand_size == 6
        assert scenario.deck_remaining == 30

    def test_around_custom_tolerance(self):
        scenario = ScenarioFilter.around("defense", 3, 5, TacticConfig(hand_size_tolerance=1, deck_tolerance=2))
        assert scenario.phase == "defend"
        assert scenario.hand_size_range == (2, 4)
        assert scenario.deck_remaining_range == (3, 7)

    def test_matches(self):
        scenario = ScenarioFilter("attack", (4, 8), (0, 10))
        assert scenario.matches("attack", 4, 10)
        assert not scenario.matches("attack", 3, 5)
        assert not scenario.matches("attack", 5, 11)
        assert not scenario.matches("defend", 5, 5)


class TestTacticSerialization:
    """Tactic 存储格式测试"""

    def test_roundtrip(self):
        tactic = make_tactic(name="Midgame Pressure")
        assert Tactic.from_dict(tactic.to_dict()) == tactic

    def test_point_scenario(self):
        doc = {
            "tactic_name": "Winning Opening",
            "scenario": {"phase": "attack", "hand_size": 6, "deck_remaining": 30},
            "action": {"type": "aggressive_start", "card_preference": "low_cards", "aggression_level": 0.8},
            "success_rate": 0.6,
            "confidence": 0.3,
        }
        tactic = Tactic.from_dict(doc)
        assert tactic.name == "Winning Opening"
        assert tactic.scenario.hand_size_range == (4, 8)
        assert tactic.action.card_preference == "low_cards"
        assert tactic.quality == pytest.approx(0.18)

    def test_name_fallback(self):
        assert Tactic.from_dict({"name": "x"}).name == "x"


class TestSimilarity:
    """相似度测试"""

    def test_same_name(self):
        assert similarity(make_tactic(name="a", phase="attack"), make_tactic(name="a", phase="defend")) == 1.0

    def test_identical_scenario(self):
        a = make_tactic(name="a")
        b = make_tactic(name="b")
        assert similarity(a, b) == pytest.approx(1.0)

    def test_partial(self):
        a = make_tactic(name="a", phase="attack", action_type="multi_attack", hand=(2, 6), deck=(5, 25))
        b = make_tactic(name="b", phase="attack", action_type="conservative", hand=(2, 6), deck=(20, 40))
        # 阶段 0.3 + 手牌 0.2
        assert similarity(a, b) == pytest.approx(0.5)


class TestApplicable:
    """战术匹配测试"""

    def test_quality_ordering(self):
        low = make_tactic(name="low", success_rate=0.6, confidence=0.3)
        high = make_tactic(name="high", success_rate=0.9, confidence=0.9)
        adapter = TacticAdapter([low, high])
        assert [t.name for t in adapter.applicable("attack", 6, 10)] == ["high", "low"]

    def test_floors(self):
        tactics = [
            make_tactic(name="rate", success_rate=0.5),
            make_tactic(name="conf", confidence=0.05),
            make_tactic(name="ok"),
        ]
        adapter = TacticAdapter(tactics)
        assert [t.name for t in adapter.applicable("attack", 6, 10)] == ["ok"]

    def test_scenario_mismatch(self):
        adapter = TacticAdapter([make_tactic(hand=(1, 2))])
        assert adapter.applicable("attack", 6, 10) == []

    def test_quality_gate(self):
        class NeverRandom(random.Random):
            def random(self):
                return 0.99

        adapter = TacticAdapter([make_tactic(preference="low_cards")], rng=NeverRandom())
        assert adapter.apply_attack(CS("6♥ 9♦"), CS("6♥ 9♦ K♣ 7♠"), context()) == NOT_APPLIED


class TestApplyAttack:
    """进攻战术测试"""

    def _apply(self, preference, valid, hand=None, aggression=0.5, deck_remaining=20):
        adapter = TacticAdapter([make_tactic(preference=preference, aggression=aggression)], rng=AlwaysRandom())
        hand = hand or valid
        return adapter.apply_attack(valid, hand, context(deck_remaining))

    def test_no_tactic(self):
        adapter = TacticAdapter([], rng=AlwaysRandom())
        assert adapter.apply_attack(CS("6♥"), CS("6♥ 7♦ 8♦ 9♦"), context()) == NOT_APPLIED

    def test_low_cards(self):
        decision = self._apply("low_cards", CS("9♥ 7♦ 8♣ K♠"))
        assert decision.applied
        assert decision.card == C("7♦")

    def test_medium_cards(self):
        assert self._apply("medium_cards", CS("6♥ 10♦ 9♣ K♠")).card == C("9♣")

    def test_high_trumps(self):
        assert self._apply("high_trumps", CS("6♥ J♠ A♠ 7♠")).card == C("A♠")

    def test_duplicates(self):
        assert self._apply("duplicates", CS("6♥ 10♦ 10♣ K♠")).card == C("10♦")

    def test_singles(self):
        valid = CS("7♥ 7♦ 9♣ 6♠")
        assert self._apply("singles", valid).card == C("9♣")

    def test_aggression_fallback_high(self):
        decision = self._apply("low_cards", CS("9♥ K♦"), CS("9♥ K♦ Q♣ J♣"), aggression=0.9)
        assert decision.card == C("K♦")

    def test_aggression_fallback_low(self):
        decision = self._apply("low_cards", CS("9♥ K♦"), CS("9♥ K♦ Q♣ J♣"), aggression=0.2)
        assert decision.card == C("9♥")

    def test_aggression_middle_not_applied(self):
        assert self._apply("low_cards", CS("9♥ K♦"), CS("9♥ K♦ Q♣ J♣"), aggression=0.5) == NOT_APPLIED


class TestApplyDefense:
    """防守战术测试"""

    def _adapter(self, action_type):
        tactic = make_tactic(phase="defend", action_type=action_type)
        return TacticAdapter([tactic], rng=AlwaysRandom())

    def test_conservative_low_card(self):
        decision = self._adapter("conservative").apply_defense(CS("8♥ Q♥"), C("7♥"), CS("8♥ Q♥ 6♦ 6♣"), context())
        assert decision.applied
        assert decision.card == C("8♥")

    def test_conservative_takes(self):
        decision = self._adapter("conservative").apply_defense(CS("Q♥ K♥"), C("J♥"), CS("Q♥ K♥ 6♦ 6♣"), context())
        assert decision.applied
        assert decision.card is None

    def test_desperate_defense(self):
        decision = self._adapter("desperate_defense").apply_defense(
            CS("Q♥ 6♠"), C("J♥"), CS("Q♥ 6♠ 6♦ 7♣"), context()
        )
        assert decision.card == C("Q♥")

    def test_trump_finish_only_when_deck_empty(self):
        adapter = self._adapter("trump_finish")
        hand = CS("Q♥ 7♠ 9♠ 6♦")
        assert adapter.apply_defense(CS("Q♥ 7♠ 9♠"), C("J♥"), hand, context(deck_remaining=0)).card == C("7♠")
        assert adapter.apply_defense(CS("Q♥ 7♠ 9♠"), C("J♥"), hand, context(deck_remaining=5)) == NOT_APPLIED

    def test_unknown_type_not_applied(self):
        adapter = self._adapter("aggressive_start")
        assert adapter.apply_defense(CS("Q♥"), C("J♥"), CS("Q♥ 6♦ 7♦ 8♦"), context()) == NOT_APPLIED

    def test_no_valid_not_applied(self):
        assert self._adapter("conservative").apply_defense([], C("A♥"), CS("6♦ 7♦ 8♦ 9♦"), context()) == NOT_APPLIED
