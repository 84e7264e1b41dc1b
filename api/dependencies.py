"""
FastAPI dependencies：提供 GameManager 與呼叫者身分

預設使用記憶體內的 Ledger Gateway 與 Randomness Service；
部署時以 app.dependency_overrides 換成真正的外部服務。

身分只來自 header，不接受 request body 裡自稱的帳號：
- X-API-Key：對應到 Settings.api_keys 裡的帳號（operator 或參與者）
- X-Randomness-Key：Randomness Service 回呼專用的共享密鑰
"""
import hmac
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException

from core.game_manager import GameManager
from database import SessionLocal, Settings, get_settings
from services.ledger_gateway import InMemoryLedger
from services.randomness_service import InMemoryRandomnessService

logger = logging.getLogger(__name__)


@lru_cache()
def get_game_manager() -> GameManager:
    settings = get_settings()
    ledger = InMemoryLedger(settings.pool_account)
    randomness = InMemoryRandomnessService(
        address=settings.randomness_address,
        fee=settings.randomness_fee,
        fee_recipient=settings.randomness_fee_recipient
    )
    manager = GameManager.from_settings(settings, ledger, randomness)
    manager.bind_randomness(SessionLocal)
    return manager


def get_caller(
    x_api_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings)
) -> str:
    """
    由 X-API-Key 解析呼叫者帳號

    異常：
        HTTPException 401: 沒有 key 或 key 不存在
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")
    for key, account in settings.api_keys.items():
        if hmac.compare_digest(key, x_api_key):
            return account
    raise HTTPException(status_code=401, detail="Invalid API key")


def require_randomness_service(
    x_randomness_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    manager: GameManager = Depends(get_game_manager)
) -> str:
    """
    驗證回呼來自 Randomness Service，返回服務的 address 作為 sender

    沒有設定 randomness_api_key 時一律拒絕。
    """
    expected = settings.randomness_api_key
    if not expected or not x_randomness_key or not hmac.compare_digest(expected, x_randomness_key):
        logger.warning("Rejected randomness callback with invalid credentials")
        raise HTTPException(status_code=403, detail="Caller is not the randomness service")
    return manager.randomness.address
