"""
Prize Ledger：結算與領獎

結算（由 Round Engine 呼叫）：
    final_prize = floor(max_prize_pool * prize_distribution_bps / 10000)
    prize_per_survivor = floor(final_prize / survivor_count)（沒有存活者時為 0）

領獎：
    每位參與者在最後一回合剩餘的票數 * prize_per_survivor，只能領一次
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from core.event_log import record_event
from core.exceptions import AlreadyClaimed, NoReward
from core.game_registry import GameRegistry
from core.guards import require_status
from core.locks import ReentrancyGuard, with_round_lock, with_user_record_lock
from core.state_machine import GameStateMachine
from database import transactional
from models import Game, GameStatus
from services.ledger_gateway import LedgerGateway
from services.prize_service import (
    calculate_claim_amount,
    calculate_final_prize,
    calculate_prize_per_survivor,
)

logger = logging.getLogger(__name__)


class PrizeLedger:
    """獎池結算與領獎"""

    def __init__(self, ledger: LedgerGateway, guard: Optional[ReentrancyGuard] = None):
        self.ledger = ledger
        self.guard = guard or ReentrancyGuard()

    def complete(self, db: Session, game: Game) -> Game:
        """
        結算遊戲（STARTED -> COMPLETED）

        注意：
            - 不自行 commit，由呼叫者（Round Engine）的 transaction 處理
            - 沒有存活者時照常結束，獎金為 0
        """
        round_obj = with_round_lock(game.id, game.round_number, db).one()

        final_prize = calculate_final_prize(game.max_prize_pool, round_obj.prize_distribution_bps)
        game.final_prize_per_survivor = calculate_prize_per_survivor(
            final_prize,
            round_obj.survivor_count
        )
        record_event(
            db,
            game.id,
            "FINAL_PRIZE_SET",
            round_number=game.round_number,
            final_prize=final_prize,
            survivor_count=round_obj.survivor_count,
            prize_per_survivor=game.final_prize_per_survivor
        )
        GameStateMachine.transition(db, game, GameStatus.COMPLETED)

        logger.info(
            f"Game {game.id} completed at round {game.round_number}: "
            f"final prize {final_prize}, {round_obj.survivor_count} survivors, "
            f"{game.final_prize_per_survivor} per survivor"
        )
        return game

    def claim(self, db: Session, game_id: int, caller: str, to: Optional[str] = None) -> int:
        """
        領取獎金

        前置條件：
        1. 遊戲狀態為 COMPLETED
        2. 尚未領取過
        3. 在最後一回合有存活的票

        流程：
        1. 標記 claimed 並 flush
        2. 透過 Ledger Gateway 轉帳給 to（預設為 caller）

        返回：
            轉出的金額

        異常：
            WrongGameStatus, AlreadyClaimed, NoReward, LedgerError, ReentrantCall
        """
        with self.guard.hold("claim", caller):
            return self._claim(db, game_id, caller, to or caller)

    @transactional
    def _claim(self, db: Session, game_id: int, caller: str, to: str) -> int:
        game = GameRegistry.get_game(db, game_id, lock=True)
        require_status(game, GameStatus.COMPLETED)

        record = with_user_record_lock(game.id, game.round_number, caller, db).first()
        if record is not None and record.claimed:
            raise AlreadyClaimed(f"Rewards of game {game.id} have been claimed by {caller}")
        if record is None or record.remaining_unit_count <= 0:
            raise NoReward(f"{caller} has no surviving units in game {game.id}")

        amount = calculate_claim_amount(game.final_prize_per_survivor, record.remaining_unit_count)

        # 1. 先寫入狀態
        record.claimed = True
        record_event(
            db,
            game.id,
            "REWARD_CLAIMED",
            round_number=game.round_number,
            participant_id=caller,
            to=to,
            unit_count=record.remaining_unit_count,
            amount=amount
        )
        db.flush()

        # 2. 再對外轉帳
        self.ledger.transfer(to, amount)

        logger.info(f"Game {game.id}: {caller} claimed {amount} to {to}")
        return amount
