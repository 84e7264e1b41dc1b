"""
Game Registry：管理 Game 的身分與生命週期起點

職責：
1. 建立 Game（含 MAX_ROUND 個 Round）
2. 追蹤 current game（id 最大者）
3. 查詢 Game / Round / UserRoundRecord

原則：
- 單一職責：只管 Game 的建立與查詢，不推進回合
- 所有狀態變更經過 GameStateMachine
- 先檢查資料是否符合要求，再執行操作
"""
import logging
import time
from typing import Callable, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from constants import BPS_DENOMINATOR, EMPTY_ENTROPY, MAX_ROUND
from core.event_log import record_event
from core.exceptions import (
    GameNotFound,
    InvalidBurnBps,
    InvalidDistributionBps,
    InvalidSurvivalBps,
)
from core.guards import require_operator, require_operator_cooldown, require_status
from core.locks import with_game_lock, with_user_record_lock
from core.state_machine import GameStateMachine
from database import transactional
from models import Game, GameStatus, Round, UserRoundRecord
from services.operator_service import OperatorRegistry

logger = logging.getLogger(__name__)


def lock_or_create_user_record(
    db: Session,
    game_id: int,
    round_number: int,
    participant_id: str
) -> UserRoundRecord:
    """
    鎖定參與者在某回合的紀錄；不存在時建立一筆歸零的紀錄

    UserRoundRecord 在第一次寫入時才隱式建立，之後永不刪除。
    """
    record = with_user_record_lock(game_id, round_number, participant_id, db).first()
    if record is None:
        record = UserRoundRecord(
            game_id=game_id,
            round_number=round_number,
            participant_id=participant_id,
            remaining_unit_count=0,
            remaining_vote_count=0,
            claimed=False
        )
        db.add(record)
        db.flush()
    return record


def _validate_bps_list(values: Sequence[int], label: str, error_cls) -> None:
    if len(values) != MAX_ROUND:
        raise error_cls(f"{label} must have exactly {MAX_ROUND} entries, got {len(values)}")
    for index, value in enumerate(values, start=1):
        if value <= 0 or value > BPS_DENOMINATOR:
            raise error_cls(f"Invalid {label} for round {index}: {value}")


class GameRegistry:
    """Game 生命週期起點與查詢"""

    def __init__(
        self,
        operators: OperatorRegistry,
        operator_cooldown_seconds: int = 0,
        clock: Callable[[], float] = time.time
    ):
        self.operators = operators
        self.operator_cooldown_seconds = operator_cooldown_seconds
        self.clock = clock

    @transactional
    def create(
        self,
        db: Session,
        operator: str,
        cost_per_ticket: int,
        burn_bps: int,
        prize_distribution_bps: Sequence[int],
        survival_bps: Sequence[int]
    ) -> Game:
        """
        建立新遊戲（狀態 NOT_STARTED -> OPENED）

        前置條件：
        1. operator 權限，且不在冷卻時間內
        2. current game 為 COMPLETED，或尚未有任何遊戲
        3. 每個 prize_distribution_bps / survival_bps 落在 (0, 10000]
        4. burn_bps 落在 [0, 10000]

        流程：
        1. 驗證前置條件
        2. 建立 Game（分配新的 game id）
        3. 建立 MAX_ROUND 個 Round（計數、entropy、request id 全部歸零）
        4. 記錄事件

        參數：
            db: SQLAlchemy Session
            operator: 呼叫者
            cost_per_ticket: 每張票價格
            burn_bps: 每張票燒毀比例
            prize_distribution_bps: 每回合可分配的獎池比例（長度 MAX_ROUND）
            survival_bps: 每回合每張票的存活機率（長度 MAX_ROUND）

        返回：
            新建立的 Game

        異常：
            NotOperator, OperatorCooldown, WrongGameStatus,
            InvalidDistributionBps（含 InvalidSurvivalBps、InvalidBurnBps）
        """
        now = self.clock()

        # 1. 驗證
        require_operator(self.operators, operator)
        current = self.get_current_game(db, lock=True)
        require_operator_cooldown(current, self.operator_cooldown_seconds, now)
        require_status(current, GameStatus.NOT_STARTED, GameStatus.COMPLETED)

        _validate_bps_list(prize_distribution_bps, "prize distribution bps", InvalidDistributionBps)
        _validate_bps_list(survival_bps, "survival bps", InvalidSurvivalBps)
        if burn_bps < 0 or burn_bps > BPS_DENOMINATOR:
            raise InvalidBurnBps(f"Invalid burn bps: {burn_bps}")

        # 2. 建立 Game
        game = Game(
            status=GameStatus.NOT_STARTED,
            round_number=0,
            cost_per_ticket=cost_per_ticket,
            burn_bps=burn_bps,
            total_units=0,
            max_prize_pool=0,
            final_prize_per_survivor=0,
            last_operated_at=now
        )
        db.add(game)
        db.flush()  # 取得 game.id

        record_event(
            db,
            game.id,
            "GAME_CREATED",
            cost_per_ticket=cost_per_ticket,
            burn_bps=burn_bps
        )
        GameStateMachine.transition(db, game, GameStatus.OPENED)

        # 3. 建立所有回合
        for round_number in range(1, MAX_ROUND + 1):
            round_obj = Round(
                game_id=game.id,
                round_number=round_number,
                prize_distribution_bps=prize_distribution_bps[round_number - 1],
                survival_bps=survival_bps[round_number - 1],
                continue_vote_count=0,
                stop_vote_count=0,
                survivor_count=0,
                request_id=None,
                entropy=EMPTY_ENTROPY
            )
            db.add(round_obj)
            record_event(
                db,
                game.id,
                "ROUND_CREATED",
                round_number=round_number,
                prize_distribution_bps=round_obj.prize_distribution_bps,
                survival_bps=round_obj.survival_bps
            )

        logger.info(f"Created game {game.id} (cost={cost_per_ticket}, burn_bps={burn_bps})")
        return game

    @staticmethod
    def get_current_game_id(db: Session) -> Optional[int]:
        """current game 即 id 最大的遊戲；沒有任何遊戲時返回 None"""
        return db.query(func.max(Game.id)).scalar()

    @staticmethod
    def get_current_game(db: Session, lock: bool = False) -> Optional[Game]:
        game_id = GameRegistry.get_current_game_id(db)
        if game_id is None:
            return None
        if lock:
            return with_game_lock(game_id, db).first()
        return db.query(Game).filter(Game.id == game_id).first()

    @staticmethod
    def get_status(db: Session) -> GameStatus:
        game = GameRegistry.get_current_game(db)
        return game.status if game is not None else GameStatus.NOT_STARTED

    @staticmethod
    def get_game(db: Session, game_id: int, lock: bool = False) -> Game:
        """
        透過 id 取得 Game

        異常：
            GameNotFound: Game 不存在
        """
        if lock:
            game = with_game_lock(game_id, db).first()
        else:
            game = db.query(Game).filter(Game.id == game_id).first()
        if not game:
            raise GameNotFound(game_id)
        return game

    @staticmethod
    def get_round(db: Session, game_id: int, round_number: int) -> Optional[Round]:
        return db.query(Round).filter(
            Round.game_id == game_id,
            Round.round_number == round_number
        ).first()

    @staticmethod
    def list_rounds(db: Session, game_id: int) -> List[Round]:
        """列出某場遊戲所有回合的參數與計數（依回合順序）"""
        return db.query(Round).filter(
            Round.game_id == game_id
        ).order_by(Round.round_number).all()

    @staticmethod
    def get_user_record(
        db: Session,
        game_id: int,
        round_number: int,
        participant_id: str
    ) -> Optional[UserRoundRecord]:
        return db.query(UserRoundRecord).filter(
            UserRoundRecord.game_id == game_id,
            UserRoundRecord.round_number == round_number,
            UserRoundRecord.participant_id == participant_id
        ).first()
