from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache, wraps
from typing import Dict, List, Literal
import logging

from constants import DEFAULT_BURN_ACCOUNT
from core.exceptions import SurvivalGameException

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    database_url: str = "sqlite:///./survival_game.db"
    log_level: str = "INFO"

    # 獎池與燒毀帳戶（Ledger Gateway 上的帳號）
    pool_account: str = "survival-game-pool"
    burn_account: str = DEFAULT_BURN_ACCOUNT

    # 具備 operator 權限的帳號
    operators: List[str] = ["operator"]

    # Randomness Service
    randomness_address: str = "randomness-service"
    randomness_fee: int = 0
    randomness_fee_recipient: str = "randomness-service"
    # 回呼端點的共享密鑰（空字串 = 不接受 HTTP 回呼）
    randomness_api_key: str = ""

    # API key -> 帳號；HTTP 呼叫者的身分只從 X-API-Key 取得
    api_keys: Dict[str, str] = {}

    # 購買上限：per_call 限制單次購買數量，cumulative 限制同一參與者累積數量
    max_buy_limit: int = 100
    buy_limit_mode: Literal["per_call", "cumulative"] = "per_call"

    # operator 連續操作的冷卻秒數（0 = 不限制）
    operator_cooldown_seconds: int = 0


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# 這允許多執行緒存取同一個 SQLite 連線（FastAPI 的多執行緒環境需要）
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs):
    for arg in args:
        if isinstance(arg, Session):
            return arg
    return kwargs.get('db')


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def some_business_logic(db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            game = Game(...)
            db.add(game)
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback（被拒絕的呼叫不會留下任何狀態變更）
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 參數中必須有 db: Session（靜態方法或實例方法皆可）
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires a 'db: Session' argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except SurvivalGameException as e:
            logger.warning(f"Rejected {func.__name__}: {type(e).__name__}: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
