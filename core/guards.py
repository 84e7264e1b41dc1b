"""
入口檢查（guards）

每個入口自行組合需要的檢查，而不是透過繼承：
- require_operator：授權 predicate
- require_operator_cooldown：operator 連續操作冷卻
- require_status：狀態 predicate
"""
from typing import Optional

from core.exceptions import NotOperator, OperatorCooldown, WrongGameStatus
from models import Game, GameStatus
from services.operator_service import OperatorRegistry


def require_operator(operators: OperatorRegistry, caller: str) -> None:
    if not operators.is_operator(caller):
        raise NotOperator(caller)


def require_status(game: Optional[Game], *expected: GameStatus) -> None:
    """
    檢查遊戲狀態

    game 為 None 時視為 NOT_STARTED（尚未建立任何遊戲）。
    """
    current = game.status if game is not None else GameStatus.NOT_STARTED
    if current not in expected:
        raise WrongGameStatus(
            current.value,
            " or ".join(status.value for status in expected)
        )


def require_operator_cooldown(game: Optional[Game], cooldown_seconds: int, now: float) -> None:
    """operator 不可在冷卻時間內連續推進遊戲"""
    if game is None or cooldown_seconds <= 0:
        return
    if now < game.last_operated_at + cooldown_seconds:
        raise OperatorCooldown(
            f"Operator should not proceed game {game.id} consecutively "
            f"(cooldown {cooldown_seconds}s)"
        )
