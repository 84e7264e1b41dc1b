"""
並發控制工具

1. Database-level 的鎖定機制，防止競態條件（Race Condition）
   使用 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）
2. ReentrancyGuard：有金流的入口在對外轉帳期間，
   禁止同一呼叫者重入同一個入口
"""
import threading
from contextlib import contextmanager
from typing import Hashable, Set, Tuple

from sqlalchemy.orm import Session, Query

from core.exceptions import ReentrantCall
from models import Game, Round, UserRoundRecord, ParticipantNonce


def with_game_lock(game_id: int, db: Session) -> Query:
    """
    鎖定一個 Game（行級鎖）

    使用場景：
    - 修改 Game 狀態、回合數、獎池快照時
    - 需要確保 Game 在整個 transaction 期間不被其他請求修改

    範例：
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)
        game.status = GameStatus.PROCESSING
        db.commit()

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Game).filter(
        Game.id == game_id
    ).with_for_update(nowait=False)


def with_round_lock(game_id: int, round_number: int, db: Session) -> Query:
    """
    鎖定一個 Round（行級鎖）

    使用場景：
    - 寫入 entropy / request_id 時（防止重複消費亂數）
    - 累加 survivor_count 與票數時
    """
    return db.query(Round).filter(
        Round.game_id == game_id,
        Round.round_number == round_number
    ).with_for_update(nowait=False)


def with_user_record_lock(
    game_id: int,
    round_number: int,
    participant_id: str,
    db: Session
) -> Query:
    """鎖定一位參與者在某回合的紀錄"""
    return db.query(UserRoundRecord).filter(
        UserRoundRecord.game_id == game_id,
        UserRoundRecord.round_number == round_number,
        UserRoundRecord.participant_id == participant_id
    ).with_for_update(nowait=False)


def with_nonce_lock(participant_id: str, db: Session) -> Query:
    return db.query(ParticipantNonce).filter(
        ParticipantNonce.participant_id == participant_id
    ).with_for_update(nowait=False)


class ReentrancyGuard:
    """
    Scoped lock：以 (entry_point, caller) 為 key

    範例：
        with guard.hold("claim", caller):
            ...  # 對外轉帳期間，同一 caller 再呼叫 claim 會得到 ReentrantCall

    不同 caller、或同一 caller 的不同入口互不影響。
    """

    def __init__(self):
        self._mutex = threading.Lock()
        self._held: Set[Tuple[str, Hashable]] = set()

    @contextmanager
    def hold(self, entry_point: str, caller: Hashable):
        key = (entry_point, caller)
        with self._mutex:
            if key in self._held:
                raise ReentrantCall(entry_point, caller)
            self._held.add(key)
        try:
            yield
        finally:
            with self._mutex:
                self._held.discard(key)

    def is_held(self, entry_point: str, caller: Hashable) -> bool:
        with self._mutex:
            return (entry_point, caller) in self._held
