import pytest

from conftest import ALICE, BOB
from core.event_log import get_events
from core.exceptions import NoRemainingVotes, WrongGameStatus
from core.vote_aggregator import VoteChoice


@pytest.fixture
def started_game(db, driver):
    game_id = driver.create()
    driver.buy(game_id, ALICE, 7)
    driver.buy(game_id, BOB, 3)
    driver.start(game_id)
    driver.manager.resolver.check(db, game_id, ALICE)
    driver.manager.resolver.check(db, game_id, BOB)
    return game_id


class TestVote:
    def test_continue_casts_whole_block(self, db, driver, started_game):
        round_obj = driver.manager.votes.vote_continue(db, started_game, ALICE)

        assert round_obj.continue_vote_count == 7
        assert round_obj.stop_vote_count == 0
        assert driver.record(started_game, 1, ALICE).remaining_vote_count == 0
        # 票數不受投票影響
        assert driver.record(started_game, 1, ALICE).remaining_unit_count == 7

    def test_stop_casts_whole_block(self, db, driver, started_game):
        round_obj = driver.manager.votes.vote(db, started_game, BOB, VoteChoice.STOP)
        assert round_obj.stop_vote_count == 3
        assert round_obj.continue_vote_count == 0

    def test_vote_twice(self, db, driver, started_game):
        driver.manager.votes.vote_stop(db, started_game, ALICE)
        with pytest.raises(NoRemainingVotes):
            driver.manager.votes.vote_continue(db, started_game, ALICE)
        assert driver.round(started_game, 1).continue_vote_count == 0

    def test_vote_without_check(self, db, driver):
        game_id = driver.create()
        driver.buy(game_id, ALICE, 2)
        driver.start(game_id)
        with pytest.raises(NoRemainingVotes):
            driver.manager.votes.vote_stop(db, game_id, ALICE)

    def test_vote_while_waiting_for_randomness(self, db, driver, started_game):
        driver.manager.engine.processing(db, started_game, "operator")
        with pytest.raises(WrongGameStatus):
            driver.manager.votes.vote_stop(db, started_game, ALICE)

    def test_votes_never_exceed_survivors(self, db, driver, started_game):
        driver.manager.votes.vote_continue(db, started_game, ALICE)
        driver.manager.votes.vote_stop(db, started_game, BOB)

        round_obj = driver.round(started_game, 1)
        assert round_obj.continue_vote_count + round_obj.stop_vote_count == round_obj.survivor_count

    def test_logs_current_vote_count(self, db, driver, started_game):
        driver.manager.votes.vote_continue(db, started_game, ALICE)
        driver.manager.votes.vote_stop(db, started_game, BOB)

        counts = get_events(db, started_game, "CURRENT_VOTE_COUNT")
        assert [e.data["continue_vote_count"] for e in counts] == [7, 7]
        assert [e.data["stop_vote_count"] for e in counts] == [0, 3]
