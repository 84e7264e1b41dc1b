"""
資料模型

三個核心 map（皆以 index 為 key）：
- Game：以遞增整數 id 識別，最大的 id 即為 current game
- Round：以 (game_id, round_number) 識別
- UserRoundRecord：以 (game_id, round_number, participant_id) 識別

輔助表：
- RandomnessRequest：亂數請求表（pending request table）
- ParticipantNonce：每位參與者的遞增 nonce
- EventLog：記錄所有重要事件
"""
import enum
import time

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from constants import EMPTY_ENTROPY
from database import Base


class Uint256(TypeDecorator):
    """
    無號 256-bit 整數（代幣金額、票數、nonce）

    SQL 整數只有 64-bit，以十進位字串儲存，讀出時轉回 int。
    欄位只在 Python 端做運算，不在 SQL 內比較大小。
    """
    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class GameStatus(enum.Enum):
    NOT_STARTED = "NOT_STARTED"  # 尚未建立任何遊戲
    OPENED = "OPENED"            # 開放購票
    PROCESSING = "PROCESSING"    # 已送出亂數請求，等待回呼
    STARTED = "STARTED"          # 本回合亂數已就緒，可以 check / 投票
    COMPLETED = "COMPLETED"      # 遊戲結束，可以領獎


class RequestStatus(enum.Enum):
    PENDING = "PENDING"
    FULFILLED = "FULFILLED"
    SUPERSEDED = "SUPERSEDED"  # 被 retry 取代


class Game(Base):
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(Enum(GameStatus), nullable=False, default=GameStatus.OPENED)
    round_number = Column(Integer, nullable=False, default=0)
    cost_per_ticket = Column(Uint256, nullable=False)
    burn_bps = Column(Integer, nullable=False)
    total_units = Column(Uint256, nullable=False, default=0)
    max_prize_pool = Column(Uint256, nullable=False, default=0)
    final_prize_per_survivor = Column(Uint256, nullable=False, default=0)
    last_operated_at = Column(Float, nullable=False, default=time.time)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    rounds = relationship(
        "Round",
        back_populates="game",
        order_by="Round.round_number"
    )


class Round(Base):
    __tablename__ = "rounds"
    __table_args__ = (
        UniqueConstraint("game_id", "round_number", name="uq_round_game_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    prize_distribution_bps = Column(Integer, nullable=False)
    survival_bps = Column(Integer, nullable=False)
    continue_vote_count = Column(Uint256, nullable=False, default=0)
    stop_vote_count = Column(Uint256, nullable=False, default=0)
    survivor_count = Column(Uint256, nullable=False, default=0)
    request_id = Column(String(128), nullable=True)
    # 256-bit 的 seed 超過 SQL 整數範圍，以十進位字串儲存
    entropy = Column(String(80), nullable=False, default=EMPTY_ENTROPY)

    game = relationship("Game", back_populates="rounds")

    @property
    def has_entropy(self) -> bool:
        return self.entropy not in (None, EMPTY_ENTROPY)

    @property
    def entropy_value(self) -> int:
        return int(self.entropy or EMPTY_ENTROPY)


class UserRoundRecord(Base):
    __tablename__ = "user_round_records"
    __table_args__ = (
        UniqueConstraint(
            "game_id", "round_number", "participant_id",
            name="uq_user_round_record"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    participant_id = Column(String(128), nullable=False, index=True)
    remaining_unit_count = Column(Uint256, nullable=False, default=0)
    remaining_vote_count = Column(Uint256, nullable=False, default=0)
    claimed = Column(Boolean, nullable=False, default=False)


class RandomnessRequest(Base):
    __tablename__ = "randomness_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String(128), nullable=False, unique=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    status = Column(Enum(RequestStatus), nullable=False, default=RequestStatus.PENDING)
    seed = Column(String(80), nullable=True)
    requested_at = Column(DateTime(timezone=True), server_default=func.now())


class ParticipantNonce(Base):
    __tablename__ = "participant_nonces"

    participant_id = Column(String(128), primary_key=True)
    nonce = Column(Uint256, nullable=False, default=0)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=True, index=True)
    event_type = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
