"""
Vote Aggregator：存活的票決定是否提前結束遊戲

每位參與者每回合只能投一次，且所有剩餘票數一次投出（不可分票）。
"""
import enum
import logging

from sqlalchemy.orm import Session

from core.event_log import record_event
from core.exceptions import NoRemainingVotes
from core.game_registry import GameRegistry
from core.guards import require_status
from core.locks import with_round_lock, with_user_record_lock
from database import transactional
from models import GameStatus, Round

logger = logging.getLogger(__name__)


class VoteChoice(enum.Enum):
    CONTINUE = "CONTINUE"
    STOP = "STOP"


class VoteAggregator:
    """投票統計"""

    @staticmethod
    def vote_continue(db: Session, game_id: int, caller: str) -> Round:
        return VoteAggregator.vote(db, game_id, caller, VoteChoice.CONTINUE)

    @staticmethod
    def vote_stop(db: Session, game_id: int, caller: str) -> Round:
        return VoteAggregator.vote(db, game_id, caller, VoteChoice.STOP)

    @staticmethod
    @transactional
    def vote(db: Session, game_id: int, caller: str, choice: VoteChoice) -> Round:
        """
        投票

        前置條件：
        1. 遊戲狀態為 STARTED
        2. caller 本回合已 check 且尚有剩餘票數

        返回：
            更新後的 Round

        異常：
            WrongGameStatus, NoRemainingVotes
        """
        game = GameRegistry.get_game(db, game_id, lock=True)
        require_status(game, GameStatus.STARTED)

        record = with_user_record_lock(game.id, game.round_number, caller, db).first()
        if record is None or record.remaining_vote_count <= 0:
            raise NoRemainingVotes(
                f"{caller} has no remaining vote in round {game.round_number} of game {game.id}"
            )

        round_obj = with_round_lock(game.id, game.round_number, db).one()
        votes = record.remaining_vote_count
        if choice == VoteChoice.CONTINUE:
            round_obj.continue_vote_count += votes
        else:
            round_obj.stop_vote_count += votes
        record.remaining_vote_count = 0

        record_event(
            db,
            game.id,
            "REMAINING_VOTE_COUNT_SET",
            round_number=game.round_number,
            participant_id=caller,
            remaining_vote_count=0
        )
        record_event(
            db,
            game.id,
            "CURRENT_VOTE_COUNT",
            round_number=game.round_number,
            continue_vote_count=round_obj.continue_vote_count,
            stop_vote_count=round_obj.stop_vote_count
        )

        logger.info(
            f"Game {game.id} round {game.round_number}: {caller} voted "
            f"{choice.value} with {votes} votes"
        )
        return round_obj
