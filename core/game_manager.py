"""
Game Manager：組裝所有元件

把外部協作者（Ledger Gateway、Randomness Service、operator 權限）
注入到 Registry / Ticket / Round Engine / Prize Ledger，
讓 API 層與測試只需要持有一個物件。
"""
import logging
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from core.elimination_resolver import EliminationResolver
from core.game_registry import GameRegistry
from core.locks import ReentrancyGuard
from core.prize_ledger import PrizeLedger
from core.round_engine import RoundEngine
from core.ticket_manager import TicketManager
from core.vote_aggregator import VoteAggregator
from services.ledger_gateway import LedgerGateway
from services.operator_service import OperatorRegistry, StaticOperatorRegistry
from services.randomness_service import RandomnessService

logger = logging.getLogger(__name__)


class GameManager:
    """Survival Game 的元件容器"""

    def __init__(
        self,
        ledger: LedgerGateway,
        randomness: RandomnessService,
        operators: OperatorRegistry,
        burn_account: str,
        max_buy_limit: int,
        buy_limit_mode: str = "per_call",
        operator_cooldown_seconds: int = 0,
        fee_ledger: Optional[LedgerGateway] = None,
        clock: Callable[[], float] = time.time
    ):
        self.ledger = ledger
        self.randomness = randomness
        self.operators = operators
        self.guard = ReentrancyGuard()

        self.registry = GameRegistry(operators, operator_cooldown_seconds, clock)
        self.tickets = TicketManager(
            ledger,
            burn_account,
            max_buy_limit,
            buy_limit_mode,
            guard=self.guard
        )
        self.prize_ledger = PrizeLedger(ledger, guard=self.guard)
        self.engine = RoundEngine(
            ledger,
            randomness,
            operators,
            self.prize_ledger,
            fee_ledger=fee_ledger,
            operator_cooldown_seconds=operator_cooldown_seconds,
            clock=clock,
            guard=self.guard
        )
        self.resolver = EliminationResolver
        self.votes = VoteAggregator

    @classmethod
    def from_settings(
        cls,
        settings,
        ledger: LedgerGateway,
        randomness: RandomnessService,
        **kwargs
    ) -> "GameManager":
        return cls(
            ledger=ledger,
            randomness=randomness,
            operators=StaticOperatorRegistry(settings.operators),
            burn_account=settings.burn_account,
            max_buy_limit=settings.max_buy_limit,
            buy_limit_mode=settings.buy_limit_mode,
            operator_cooldown_seconds=settings.operator_cooldown_seconds,
            **kwargs
        )

    def bind_randomness(self, session_factory: Callable[[], Session]) -> None:
        """
        把 Randomness Service 的回呼接到 Round Engine

        每次回呼都使用新的 Session，與送出請求的 transaction 無關。
        """
        def on_fulfill(sender: str, request_id: str, seed: int) -> bool:
            db = session_factory()
            try:
                return self.engine.consume_random_number(db, sender, request_id, seed)
            finally:
                db.close()

        bind = getattr(self.randomness, "bind", None)
        if bind is None:
            logger.info("Randomness service delivers callbacks over HTTP; nothing to bind")
            return
        bind(on_fulfill)
