"""
Game API Endpoints（operator）

職責：
1. 建立遊戲、查詢遊戲與回合
2. 推進回合：start / retry / processing / complete

所有業務邏輯集中在 GameManager，這裡只負責把異常轉成 HTTP 狀態碼
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from api.dependencies import get_caller, get_game_manager
from core.exceptions import AuthorizationError, GameNotFound, SurvivalGameException
from core.game_manager import GameManager
from core.game_registry import GameRegistry
from database import get_db
from schemas import (
    CurrentStatusResponse,
    GameCreate,
    GameResponse,
    RoundResponse,
)

router = APIRouter(prefix="/api/games", tags=["games"])
logger = logging.getLogger(__name__)


@router.post("", response_model=GameResponse)
def create_game(
    game_data: GameCreate,
    operator: str = Depends(get_caller),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    """
    建立新遊戲（operator endpoint）

    前置條件：
    - current game 為 COMPLETED 或尚未有任何遊戲
    - 每個 bps 落在 (0, 10000]
    """
    try:
        game = manager.registry.create(
            db,
            operator,
            game_data.cost_per_ticket,
            game_data.burn_bps,
            game_data.prize_distribution_bps,
            game_data.survival_bps
        )
        return GameResponse.model_validate(game)

    except AuthorizationError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SurvivalGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/current", response_model=CurrentStatusResponse)
def get_current_game(db: Session = Depends(get_db)):
    """取得 current game 的 id 與狀態（沒有遊戲時為 NOT_STARTED）"""
    game = GameRegistry.get_current_game(db)
    if game is None:
        return CurrentStatusResponse(game_id=None, status=GameRegistry.get_status(db))
    return CurrentStatusResponse(game_id=game.id, status=game.status)


@router.get("/{game_id}", response_model=GameResponse)
def get_game(game_id: int, db: Session = Depends(get_db)):
    try:
        return GameResponse.model_validate(GameRegistry.get_game(db, game_id))
    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")


@router.get("/{game_id}/rounds", response_model=List[RoundResponse])
def list_rounds(game_id: int, db: Session = Depends(get_db)):
    """列出所有回合的參數與計數"""
    try:
        GameRegistry.get_game(db, game_id)
        return [RoundResponse.model_validate(r) for r in GameRegistry.list_rounds(db, game_id)]
    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")


@router.get("/{game_id}/rounds/{round_number}", response_model=RoundResponse)
def get_round(game_id: int, round_number: int, db: Session = Depends(get_db)):
    round_obj = GameRegistry.get_round(db, game_id, round_number)
    if not round_obj:
        raise HTTPException(status_code=404, detail="Round not found")
    return RoundResponse.model_validate(round_obj)


def _operator_action(action_name, action, db: Session, game_id: int, operator: str):
    try:
        game = action(db, game_id, operator)
        return GameResponse.model_validate(game)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except AuthorizationError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SurvivalGameException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to {action_name} game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/start", response_model=GameResponse)
def start_game(
    game_id: int,
    operator: str = Depends(get_caller),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    """
    開始遊戲（OPENED -> PROCESSING）

    效果：
    - 快照獎池
    - 請求第 1 回合的亂數
    """
    return _operator_action("start", manager.engine.start, db, game_id, operator)


@router.post("/{game_id}/retry", response_model=GameResponse)
def retry_randomness(
    game_id: int,
    operator: str = Depends(get_caller),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    """亂數回呼遺失時重新請求"""
    return _operator_action("retry", manager.engine.retry, db, game_id, operator)


@router.post("/{game_id}/processing", response_model=GameResponse)
def process_round(
    game_id: int,
    operator: str = Depends(get_caller),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    """結束本回合：結算或請求下一回合的亂數"""
    return _operator_action("process", manager.engine.processing, db, game_id, operator)


@router.post("/{game_id}/complete", response_model=GameResponse)
def complete_game(
    game_id: int,
    operator: str = Depends(get_caller),
    db: Session = Depends(get_db),
    manager: GameManager = Depends(get_game_manager)
):
    """強制結算（緊急終止）"""
    return _operator_action("complete", manager.engine.complete, db, game_id, operator)
