"""純計算邏輯：存活判定、獎金計算、最後一回合判定"""
import pytest

from services.elimination_service import count_survivors, survives, unit_roll
from services.prize_service import (
    calculate_burn_amount,
    calculate_claim_amount,
    calculate_final_prize,
    calculate_prize_per_survivor,
)
from services.vote_service import is_final_round, is_stop_majority

ENTROPY = int("5eed" * 16, 16)


class TestElimination:
    def test_roll_is_within_basis_points(self):
        for nonce in range(200):
            assert 0 <= unit_roll(ENTROPY, 1, "alice", nonce) < 10_000

    def test_roll_is_deterministic(self):
        first = [unit_roll(ENTROPY, 1, "alice", n) for n in range(50)]
        second = [unit_roll(ENTROPY, 1, "alice", n) for n in range(50)]
        assert first == second

    def test_roll_depends_on_every_input(self):
        base = [unit_roll(ENTROPY, 1, "alice", n) for n in range(20)]
        assert base != [unit_roll(ENTROPY + 1, 1, "alice", n) for n in range(20)]
        assert base != [unit_roll(ENTROPY, 2, "alice", n) for n in range(20)]
        assert base != [unit_roll(ENTROPY, 1, "bob", n) for n in range(20)]

    def test_survival_compares_strictly_below_threshold(self):
        roll = unit_roll(ENTROPY, 1, "alice", 7)
        assert survives(ENTROPY, 1, "alice", 7, roll + 1)
        assert not survives(ENTROPY, 1, "alice", 7, roll)

    def test_full_survival_bps_keeps_every_unit(self):
        assert count_survivors(ENTROPY, 1, "alice", 0, 25, 10_000) == (25, 25)

    def test_count_survivors_advances_nonce_per_unit(self):
        survivors, next_nonce = count_survivors(ENTROPY, 1, "alice", 40, 10, 1000)
        assert next_nonce == 50
        assert 0 <= survivors <= 10

    def test_count_survivors_is_reproducible(self):
        runs = {count_survivors(ENTROPY, 3, "alice", 0, 100, 3000) for _ in range(5)}
        assert len(runs) == 1

    def test_survival_rate_tracks_bps(self):
        survivors, _ = count_survivors(ENTROPY, 1, "alice", 0, 2000, 5000)
        assert 850 < survivors < 1150


class TestPrize:
    def test_burn_amount_floors(self):
        assert calculate_burn_amount(1, 1, 200) == 0
        assert calculate_burn_amount(10**18, 10, 2000) == 2 * 10**18

    def test_final_prize_scenario(self):
        final_prize = calculate_final_prize(10_000, 1000)
        assert final_prize == 1000
        assert calculate_prize_per_survivor(final_prize, 5) == 200

    def test_zero_survivors_pay_nothing(self):
        assert calculate_prize_per_survivor(1000, 0) == 0

    def test_rounding_loss_never_overpays(self):
        final_prize = calculate_final_prize(999_999, 3333)
        per_survivor = calculate_prize_per_survivor(final_prize, 7)
        assert calculate_claim_amount(per_survivor, 7) <= final_prize


class TestFinalRound:
    @pytest.mark.parametrize(
        "round_number, survivors, cont, stop, expected",
        [
            (1, 10, 3, 7, True),
            (6, 10, 7, 3, True),
            (2, 0, 0, 0, True),
            (2, 10, 5, 5, False),
            (1, 10, 10, 0, False),
        ],
    )
    def test_is_final_round(self, round_number, survivors, cont, stop, expected):
        assert is_final_round(round_number, survivors, cont, stop) is expected

    def test_tie_does_not_stop(self):
        assert not is_stop_majority(4, 4)
