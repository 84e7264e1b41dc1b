"""
Elimination Resolver：參與者自行 check 本回合的存活票數

每位參與者每回合 check 一次：
- 上一回合（第 1 回合時為 round 0）剩餘的票逐張用本回合 entropy 判定
- 存活的票成為本回合的票數與投票數
- 上一回合的票數歸零（票只會往前移動，不會重複使用）
"""
import logging

from sqlalchemy.orm import Session

from core.event_log import record_event
from core.exceptions import EntropyNotReady, NoUnitsToCheck
from core.game_registry import GameRegistry, lock_or_create_user_record
from core.guards import require_status
from core.locks import with_nonce_lock, with_round_lock, with_user_record_lock
from database import transactional
from models import GameStatus, ParticipantNonce, UserRoundRecord
from services.elimination_service import count_survivors

logger = logging.getLogger(__name__)


class EliminationResolver:
    """存活判定"""

    @staticmethod
    @transactional
    def check(db: Session, game_id: int, caller: str) -> UserRoundRecord:
        """
        判定 caller 的票在本回合的存活數

        前置條件：
        1. 遊戲狀態為 STARTED
        2. 本回合 entropy 已就緒
        3. caller 在上一回合有剩餘的票

        流程：
        1. 取得並遞增 caller 的 nonce（每張票用掉一個）
        2. 逐張判定存活
        3. 寫入本回合紀錄、累加 survivor_count、歸零上一回合票數

        返回：
            caller 在本回合的紀錄

        異常：
            WrongGameStatus, EntropyNotReady, NoUnitsToCheck
        """
        game = GameRegistry.get_game(db, game_id, lock=True)
        require_status(game, GameStatus.STARTED)

        round_obj = with_round_lock(game.id, game.round_number, db).one()
        if not round_obj.has_entropy:
            raise EntropyNotReady(f"Round {game.round_number} of game {game.id} has no entropy yet")

        previous = with_user_record_lock(game.id, game.round_number - 1, caller, db).first()
        if previous is None or previous.remaining_unit_count <= 0:
            raise NoUnitsToCheck(
                f"{caller} has no units to check in round {game.round_number} of game {game.id}"
            )

        # 1. nonce
        nonce_row = with_nonce_lock(caller, db).first()
        if nonce_row is None:
            nonce_row = ParticipantNonce(participant_id=caller, nonce=0)
            db.add(nonce_row)

        # 2. 判定
        unit_count = previous.remaining_unit_count
        survivors, next_nonce = count_survivors(
            round_obj.entropy_value,
            game.id,
            caller,
            nonce_row.nonce,
            unit_count,
            round_obj.survival_bps
        )
        nonce_row.nonce = next_nonce

        # 3. 寫入
        current = lock_or_create_user_record(db, game.id, game.round_number, caller)
        current.remaining_unit_count = survivors
        current.remaining_vote_count = survivors
        round_obj.survivor_count += survivors
        previous.remaining_unit_count = 0

        record_event(
            db,
            game.id,
            "ROUND_SURVIVOR_COUNT_SET",
            round_number=game.round_number,
            survivor_count=round_obj.survivor_count
        )
        record_event(
            db,
            game.id,
            "REMAINING_VOTE_COUNT_SET",
            round_number=game.round_number,
            participant_id=caller,
            remaining_vote_count=survivors
        )

        logger.info(
            f"Game {game.id} round {game.round_number}: {caller} checked "
            f"{survivors}/{unit_count} units survived"
        )
        return current
