"""环境层测试"""
import pytest

from core.cards import Suit, FULL_DECK, str_to_card, str_to_cards
from core.state import MatchState, Phase, new_match
from core.table import TableEntry


def C(s):
    return str_to_card(s)


def CS(s):
    return tuple(str_to_cards(s))


class TestObservationBuilder:
    """ObservationBuilder 测试"""

    def test_build_initial(self):
        from env.observation import ObservationBuilder

        state = new_match(2, seed=42)
        obs = ObservationBuilder().build(state)

        assert obs.hand.shape == (36,)
        assert obs.hand.sum() == 6
        assert obs.trump.sum() == 1
        assert obs.trump_card.sum() == 1
        assert obs.deck[0] == pytest.approx(24 / 36)
        assert obs.role[0] == 1.0

    def test_mask_only_for_current_player(self):
        from env.observation import ObservationBuilder

        state = new_match(2, seed=1)
        builder = ObservationBuilder()
        other = state.defender
        assert builder.build(state, state.current_player).legal_mask.sum() == 6
        assert builder.build(state, other).legal_mask.sum() == 0

    def test_board_encoding(self):
        from env.observation import ObservationBuilder

        state = MatchState(
            hands=(CS("9♥"), CS("8♦")),
            deck=(),
            trump_card=None,
            trump_suit=Suit.SPADES,
            attacker=0,
            defender=1,
            board=(TableEntry(C("6♥"), C("7♥")), TableEntry(C("6♣"))),
            phase=Phase.DEFEND,
        )
        obs = ObservationBuilder().build(state, 1)
        assert obs.board_attack[C("6♥").index] == 1
        assert obs.board_attack[C("6♣").index] == 1
        assert obs.board_defense[C("7♥").index] == 1
        assert obs.board_defense.sum() == 1
        assert obs.role[1] == 1.0

    def test_flat_array(self):
        from env.observation import ObservationBuilder

        obs = ObservationBuilder().build(new_match(3, seed=2))
        assert obs.to_flat_array().shape == (192,)


class TestActionEncoder:
    """ActionEncoder 测试"""

    def test_encode_decode(self):
        from env.observation import ActionEncoder, PASS_ACTION

        encoder = ActionEncoder()
        assert encoder.num_actions == 37
        for card in FULL_DECK:
            assert encoder.decode(encoder.encode(card)) == card
        assert encoder.encode(None) == PASS_ACTION
        assert encoder.decode(PASS_ACTION) is None

    def test_decode_out_of_range(self):
        from env.observation import ActionEncoder

        with pytest.raises(ValueError):
            ActionEncoder().decode(37)

    def test_legal_indices_include_pass(self):
        from env.observation import ActionEncoder, PASS_ACTION

        state = MatchState(
            hands=(CS("9♥"), CS("8♥ 6♦")),
            deck=(),
            trump_card=None,
            trump_suit=Suit.SPADES,
            attacker=0,
            defender=1,
            board=(TableEntry(C("7♥")),),
            phase=Phase.DEFEND,
        )
        assert ActionEncoder().get_legal_action_indices(state) == [C("8♥").index, PASS_ACTION]


class TestReward:
    """奖励测试"""

    def _finished(self, loser):
        return MatchState(
            hands=((), ()) if loser is None else tuple(CS("6♥") if p == loser else () for p in range(2)),
            deck=(),
            trump_card=None,
            trump_suit=Suit.SPADES,
            attacker=0,
            defender=1,
            phase=Phase.FINISHED,
            loser=loser,
        )

    def test_terminal(self):
        from env.reward import RewardCalculator

        calc = RewardCalculator()
        assert calc.compute(self._finished(1), player=0) == 1.0
        assert calc.compute(self._finished(1), player=1) == -1.0
        assert calc.compute(self._finished(None), player=0) == 0.0

    def test_sparse_non_terminal(self):
        from env.reward import RewardCalculator

        state = new_match(2, seed=0)
        assert RewardCalculator().compute(state, state, 0) == 0.0

    def test_shaped_take_penalty(self):
        from env.reward import create_reward_calculator, defender_took

        prev = MatchState(
            hands=(CS("9♥"), CS("8♦")),
            deck=(),
            trump_card=None,
            trump_suit=Suit.SPADES,
            attacker=0,
            defender=1,
            board=(TableEntry(C("6♥"), C("7♥")), TableEntry(C("6♣"))),
            phase=Phase.DEFEND,
        )
        state = prev.with_move(None)
        assert defender_took(prev, state)
        calc = create_reward_calculator("shaped")
        assert calc.compute(state, prev, 1) == pytest.approx(-3 * 0.05)

    def test_shaped_shed_bonus(self):
        from env.reward import create_reward_calculator

        prev = new_match(2, seed=3)
        state = prev.with_move(prev.get_legal_actions()[0])
        calc = create_reward_calculator("shaped")
        assert calc.compute(state, prev, prev.attacker) == pytest.approx(0.01)

    def test_multi_agent(self):
        from env.reward import MultiAgentReward

        rewards = MultiAgentReward().compute_all(self._finished(0))
        assert rewards == {0: -1.0, 1: 1.0}


class TestDurakEnv:
    """DurakEnv 测试"""

    def test_reset(self):
        from env import DurakEnv

        env = DurakEnv(seed=42)
        obs, info = env.reset()

        assert isinstance(obs, dict)
        assert obs["hand"].shape == (36,)
        assert env.state.current_player == 0 or env.state.is_finished
        assert "legal_action_mask" in info

    def test_spaces(self):
        from env import DurakEnv

        env = DurakEnv()
        assert env.action_space.n == 37
        obs, _ = env.reset(seed=0)
        assert env.observation_space.contains(obs)

    def test_invalid_agent_player(self):
        from env import DurakEnv

        with pytest.raises(ValueError):
            DurakEnv(player_count=2, agent_player=2)

    def test_step_before_reset(self):
        from env import DurakEnv

        with pytest.raises(RuntimeError):
            DurakEnv().step(36)

    def test_illegal_action_penalized(self):
        from env import DurakEnv

        env = DurakEnv(seed=5)
        env.reset()
        hand = set(env.state.hands[0])
        outside = next(c for c in FULL_DECK if c not in hand)
        before = env.state
        obs, reward, terminated, truncated, info = env.step(outside.index)
        assert reward == -1.0
        assert not terminated
        assert info["error"] == "Invalid action"
        assert env.state is before

    def test_accepts_card_and_none(self):
        from env import DurakEnv

        env = DurakEnv(seed=6)
        env.reset()
        legal = env.state.get_legal_actions()
        _, reward, _, _, info = env.step(legal[0] if legal else None)
        assert "error" not in info
        if not env.state.is_finished and env.state.is_legal(None):
            _, _, _, _, info = env.step(None)
            assert "error" not in info

    @pytest.mark.parametrize("opponent", ["easy", "expert"])
    def test_full_episode(self, opponent):
        from env import DurakEnv

        env = DurakEnv(seed=7, opponent=opponent)
        obs, info = env.reset()

        done = env.state.is_finished
        steps = 0
        total_reward = 0.0
        while not done and steps < 1000:
            action = env.sample_action()
            obs, reward, terminated, truncated, info = env.step(action)
            total_reward += reward
            done = terminated or truncated
            steps += 1

        assert done
        if env.state.is_finished:
            assert "loser" in info
            assert total_reward in (-1.0, 0.0, 1.0)

    def test_multiplayer_episode(self):
        from env import DurakEnv

        env = DurakEnv(seed=8, player_count=4, agent_player=2, opponent="hard")
        env.reset()
        done = env.state.is_finished
        while not done:
            _, _, terminated, truncated, _ = env.step(env.sample_action())
            done = terminated or truncated
        assert env.state.is_finished or env.state.step_count >= env.max_steps

    def test_truncation(self):
        from env import DurakEnv

        env = DurakEnv(seed=9, max_steps=4)
        env.reset()
        truncated = False
        for _ in range(4):
            _, _, terminated, truncated, _ = env.step(env.sample_action())
            if terminated or truncated:
                break
        assert truncated

    def test_render(self):
        from env import DurakEnv

        env = DurakEnv(seed=10, render_mode="ansi")
        env.reset()
        text = env.render()
        assert "Trump" in text
        assert "*P0" in text

    def test_make_env(self):
        from env import make_env

        env = make_env(opponent="medium", seed=1)
        assert env.opponent.value == "medium"
