"""
Ticket Manager：遊戲開放期間的購票

流程：
1. 驗證狀態（OPENED）、數量與購買上限
2. 先寫入狀態（round 0 的票數、total_units）
3. 再透過 Ledger Gateway 收款並燒毀 burn_bps 部分

轉帳失敗時整個 transaction rollback，票數不會留下。
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from core.event_log import record_event
from core.exceptions import ExceedsBuyLimit, ZeroSize
from core.game_registry import GameRegistry, lock_or_create_user_record
from core.guards import require_status
from core.locks import ReentrancyGuard
from database import transactional
from models import GameStatus, UserRoundRecord
from services.ledger_gateway import LedgerGateway
from services.prize_service import calculate_burn_amount, calculate_ticket_cost

logger = logging.getLogger(__name__)

BUY_LIMIT_PER_CALL = "per_call"
BUY_LIMIT_CUMULATIVE = "cumulative"


class TicketManager:
    """購票管理器"""

    def __init__(
        self,
        ledger: LedgerGateway,
        burn_account: str,
        max_buy_limit: int,
        buy_limit_mode: str = BUY_LIMIT_PER_CALL,
        guard: Optional[ReentrancyGuard] = None
    ):
        if buy_limit_mode not in (BUY_LIMIT_PER_CALL, BUY_LIMIT_CUMULATIVE):
            raise ValueError(f"Unknown buy limit mode: {buy_limit_mode}")
        self.ledger = ledger
        self.burn_account = burn_account
        self.max_buy_limit = max_buy_limit
        self.buy_limit_mode = buy_limit_mode
        self.guard = guard or ReentrancyGuard()

    def buy(
        self,
        db: Session,
        game_id: int,
        payer: str,
        size: int,
        to: Optional[str] = None
    ) -> UserRoundRecord:
        """
        購買 size 張票，記在 to（預設為 payer）名下

        參數：
            db: SQLAlchemy Session
            game_id: 遊戲 id
            payer: 付款者（需事先 approve 給獎池帳戶）
            size: 張數
            to: 票的持有者

        返回：
            持有者在 round 0 的紀錄

        異常：
            WrongGameStatus: 遊戲不是 OPENED
            ZeroSize: size <= 0
            ExceedsBuyLimit: 超過購買上限
            LedgerError: 餘額或授權不足
            ReentrantCall: 轉帳期間重入
        """
        with self.guard.hold("buy", payer):
            return self._buy(db, game_id, payer, size, to or payer)

    @transactional
    def _buy(
        self,
        db: Session,
        game_id: int,
        payer: str,
        size: int,
        to: str
    ) -> UserRoundRecord:
        game = GameRegistry.get_game(db, game_id, lock=True)
        require_status(game, GameStatus.OPENED)

        if size <= 0:
            raise ZeroSize("Buy size must be greater than zero")

        record = lock_or_create_user_record(db, game.id, 0, to)
        if self.buy_limit_mode == BUY_LIMIT_CUMULATIVE:
            requested = record.remaining_unit_count + size
        else:
            requested = size
        if requested > self.max_buy_limit:
            raise ExceedsBuyLimit(
                f"Size must not exceed max buy limit {self.max_buy_limit} "
                f"({self.buy_limit_mode}), got {requested}"
            )

        # 1. 先寫入狀態
        record.remaining_unit_count += size
        game.total_units += size
        record_event(db, game.id, "UNITS_BOUGHT", participant_id=to, payer=payer, size=size)
        record_event(db, game.id, "TOTAL_UNITS_SET", total_units=game.total_units)
        db.flush()

        # 2. 再對外轉帳
        total_cost = calculate_ticket_cost(game.cost_per_ticket, size)
        burn_amount = calculate_burn_amount(game.cost_per_ticket, size, game.burn_bps)
        self.ledger.transfer_from(payer, self.ledger.account, total_cost)
        if burn_amount > 0:
            self.ledger.transfer(self.burn_account, burn_amount)

        logger.info(
            f"Game {game.id}: {payer} bought {size} units for {to} "
            f"(cost={total_cost}, burned={burn_amount})"
        )
        return record
