"""
狀態機：集中管理所有 Game 狀態轉換

NOT_STARTED -> OPENED -> PROCESSING <-> STARTED -> COMPLETED

- PROCESSING：已送出亂數請求（request sent）
- STARTED：亂數已回呼（result received）
兩者分開，讓「等待外部亂數」成為明確的狀態。
"""
import logging

from sqlalchemy.orm import Session

from core.event_log import record_event
from core.exceptions import InvalidStateTransition
from models import Game, GameStatus

logger = logging.getLogger(__name__)


class GameStateMachine:
    """Game 狀態轉換表"""

    ALLOWED_TRANSITIONS = {
        GameStatus.NOT_STARTED: {GameStatus.OPENED},
        GameStatus.OPENED: {GameStatus.PROCESSING},
        GameStatus.PROCESSING: {GameStatus.STARTED},
        GameStatus.STARTED: {GameStatus.PROCESSING, GameStatus.COMPLETED},
        GameStatus.COMPLETED: set(),
    }

    @classmethod
    def can_transition(cls, current: GameStatus, target: GameStatus) -> bool:
        return target in cls.ALLOWED_TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, db: Session, game: Game, target: GameStatus) -> Game:
        """
        執行狀態轉換並記錄 GAME_STATUS_CHANGED 事件

        參數：
            db: SQLAlchemy Session
            game: 已鎖定的 Game
            target: 目標狀態

        異常：
            InvalidStateTransition: 轉換不在允許表內
        """
        current = game.status
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Game {game.id}: cannot transition {current.value} -> {target.value}"
            )

        game.status = target
        record_event(
            db,
            game.id,
            "GAME_STATUS_CHANGED",
            from_status=current.value,
            to_status=target.value
        )
        logger.info(f"Game {game.id} status {current.value} -> {target.value}")
        return game
