"""
Randomness callback endpoint

外部 Randomness Service 透過 HTTP 送回亂數時使用。
request_id 過期或不符時回傳 applied=False，而不是錯誤：
服務端無法被強迫正確重送，拒絕只會讓它卡住。

呼叫者必須帶正確的 X-Randomness-Key，否則 403。
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from api.dependencies import get_game_manager, require_randomness_service
from core.exceptions import AuthorizationError
from core.game_manager import GameManager
from database import get_db
from schemas import FulfillResponse, RandomnessFulfill

router = APIRouter(prefix="/api/randomness", tags=["randomness"])
logger = logging.getLogger(__name__)


@router.post("/fulfill", response_model=FulfillResponse)
def fulfill_randomness(
    body: RandomnessFulfill,
    sender: str = Depends(require_randomness_service),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    try:
        applied = manager.engine.consume_random_number(
            db,
            sender,
            body.request_id,
            body.seed
        )
        return FulfillResponse(applied=applied)

    except AuthorizationError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to consume randomness {body.request_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
