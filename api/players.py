"""
Participant API Endpoints

職責：
1. 購票（OPENED）
2. check 存活票數、投票（STARTED）
3. 領獎（COMPLETED）
4. 查詢參與者在某回合的紀錄
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from api.dependencies import get_caller, get_game_manager
from core.exceptions import GameNotFound, SurvivalGameException
from core.game_manager import GameManager
from core.game_registry import GameRegistry
from database import get_db
from schemas import (
    BuyRequest,
    ClaimRequest,
    ClaimResponse,
    RoundResponse,
    UserRoundRecordResponse,
    VoteRequest,
)

router = APIRouter(prefix="/api/games", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/{game_id}/buy", response_model=UserRoundRecordResponse)
def buy_units(
    game_id: int,
    buy_data: BuyRequest,
    payer: str = Depends(get_caller),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    """
    購票（遊戲開放期間）

    前置條件：
    - 遊戲狀態必須是 OPENED
    - payer（呼叫者本人）已 approve 足夠的額度給獎池帳戶
    """
    try:
        record = manager.tickets.buy(
            db,
            game_id,
            payer,
            buy_data.size,
            buy_data.to
        )
        return UserRoundRecordResponse.model_validate(record)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except SurvivalGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to buy units: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/check", response_model=UserRoundRecordResponse)
def check_units(
    game_id: int,
    participant_id: str = Depends(get_caller),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    """判定參與者本回合的存活票數（每回合一次）"""
    try:
        record = manager.resolver.check(db, game_id, participant_id)
        return UserRoundRecordResponse.model_validate(record)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except SurvivalGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to check units: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/vote", response_model=RoundResponse)
def vote(
    game_id: int,
    vote_data: VoteRequest,
    participant_id: str = Depends(get_caller),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    """
    投票 CONTINUE / STOP

    所有剩餘票數一次投出，投完後再投會得到 400
    """
    try:
        round_obj = manager.votes.vote(db, game_id, participant_id, vote_data.choice)
        return RoundResponse.model_validate(round_obj)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except SurvivalGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to vote: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/claim", response_model=ClaimResponse)
def claim_reward(
    game_id: int,
    claim_data: ClaimRequest,
    participant_id: str = Depends(get_caller),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    """領取呼叫者本人的獎金（只能一次），可轉給 to"""
    try:
        amount = manager.prize_ledger.claim(
            db,
            game_id,
            participant_id,
            claim_data.to
        )
        return ClaimResponse(amount=amount)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except SurvivalGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to claim reward: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get(
    "/{game_id}/rounds/{round_number}/participants/{participant_id}",
    response_model=UserRoundRecordResponse
)
def get_participant_record(
    game_id: int,
    round_number: int,
    participant_id: str,
    db: Session = Depends(get_db)
):
    record = GameRegistry.get_user_record(db, game_id, round_number, participant_id)
    if not record:
        raise HTTPException(status_code=404, detail="Record not found")
    return UserRoundRecordResponse.model_validate(record)
