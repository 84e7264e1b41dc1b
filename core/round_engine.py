"""
Round Engine：推進遊戲回合

職責：
1. start：快照獎池，送出第 1 回合的亂數請求
2. consume_random_number：Randomness Service 的回呼，寫入 entropy 並開始回合
3. retry：亂數回呼遺失時重新請求
4. processing：判斷是否結束，否則請求下一回合的亂數
5. complete：operator 強制結束

亂數協定：
- 「已送出請求」= PROCESSING，「已收到結果」= STARTED
- 回呼的 request_id 不符時不報錯、不改任何狀態（服務可能送來過期的回呼）
"""
import logging
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from constants import MAX_ROUND
from core.event_log import record_event
from core.exceptions import NotRandomnessService, RandomNumberAlreadyRequested
from core.game_registry import GameRegistry
from core.guards import require_operator, require_operator_cooldown, require_status
from core.locks import ReentrancyGuard, with_round_lock
from core.prize_ledger import PrizeLedger
from core.state_machine import GameStateMachine
from database import transactional
from models import Game, GameStatus, RandomnessRequest, RequestStatus, Round
from services.ledger_gateway import LedgerGateway
from services.operator_service import OperatorRegistry
from services.randomness_service import RandomnessService
from services.vote_service import is_final_round

logger = logging.getLogger(__name__)


class RoundEngine:
    """回合狀態機的推進者"""

    def __init__(
        self,
        ledger: LedgerGateway,
        randomness: RandomnessService,
        operators: OperatorRegistry,
        prize_ledger: PrizeLedger,
        fee_ledger: Optional[LedgerGateway] = None,
        operator_cooldown_seconds: int = 0,
        clock: Callable[[], float] = time.time,
        guard: Optional[ReentrancyGuard] = None
    ):
        self.ledger = ledger
        self.randomness = randomness
        self.operators = operators
        self.prize_ledger = prize_ledger
        self.fee_ledger = fee_ledger or ledger
        self.operator_cooldown_seconds = operator_cooldown_seconds
        self.clock = clock
        self.guard = guard or ReentrancyGuard()

    # ============ operator 入口 ============

    def start(self, db: Session, game_id: int, operator: str) -> Game:
        """
        開始遊戲（OPENED -> PROCESSING）

        流程：
        1. 驗證 operator、冷卻、狀態
        2. 快照獎池餘額（之後的存入不影響獎金計算）
        3. 請求第 1 回合的亂數

        異常：
            NotOperator, OperatorCooldown, WrongGameStatus, LedgerError
        """
        with self.guard.hold("start", operator):
            return self._start(db, game_id, operator)

    @transactional
    def _start(self, db: Session, game_id: int, operator: str) -> Game:
        game = self._lock_for_operator(db, game_id, operator)
        require_status(game, GameStatus.OPENED)

        game.max_prize_pool = self.ledger.balance_of(self.ledger.account)
        record_event(db, game.id, "PRIZE_POOL_SNAPSHOT", max_prize_pool=game.max_prize_pool)

        GameStateMachine.transition(db, game, GameStatus.PROCESSING)
        self._request_random_number(db, game, operator)

        logger.info(
            f"Game {game.id} started with {game.total_units} units, "
            f"prize pool snapshot {game.max_prize_pool}"
        )
        return game

    def retry(self, db: Session, game_id: int, operator: str) -> Game:
        """
        重新請求亂數（回呼遺失或服務沒有回應時使用）

        前置條件：
        - PROCESSING，且等待中的回合尚未取得 entropy

        效果：
        - 新的 request_id 取代舊的；舊 id 之後的回呼會被忽略
        """
        with self.guard.hold("retry", operator):
            return self._retry(db, game_id, operator)

    @transactional
    def _retry(self, db: Session, game_id: int, operator: str) -> Game:
        game = self._lock_for_operator(db, game_id, operator)
        require_status(game, GameStatus.PROCESSING)

        self._request_random_number(db, game, operator, rearm=True)
        logger.info(f"Game {game.id}: randomness re-requested for round {game.round_number + 1}")
        return game

    def processing(self, db: Session, game_id: int, operator: str) -> Game:
        """
        結束本回合（STARTED -> PROCESSING 或 COMPLETED）

        規則：
        - stop 票多於 continue 票、已是最後一回合、或沒有存活者 -> 結算
        - 否則請求下一回合的亂數
        """
        with self.guard.hold("processing", operator):
            return self._processing(db, game_id, operator)

    @transactional
    def _processing(self, db: Session, game_id: int, operator: str) -> Game:
        game = self._lock_for_operator(db, game_id, operator)
        require_status(game, GameStatus.STARTED)

        round_obj = with_round_lock(game.id, game.round_number, db).one()
        final = is_final_round(
            game.round_number,
            round_obj.survivor_count,
            round_obj.continue_vote_count,
            round_obj.stop_vote_count,
            MAX_ROUND
        )

        if final:
            logger.info(
                f"Game {game.id}: round {game.round_number} is final "
                f"(survivors={round_obj.survivor_count}, "
                f"continue={round_obj.continue_vote_count}, stop={round_obj.stop_vote_count})"
            )
            self.prize_ledger.complete(db, game)
        else:
            GameStateMachine.transition(db, game, GameStatus.PROCESSING)
            self._request_random_number(db, game, operator)
        return game

    @transactional
    def complete(self, db: Session, game_id: int, operator: str) -> Game:
        """operator 強制結算（緊急終止），不檢查投票與回合數"""
        game = self._lock_for_operator(db, game_id, operator)
        require_status(game, GameStatus.STARTED)

        logger.warning(f"Game {game.id}: forced completion at round {game.round_number}")
        self.prize_ledger.complete(db, game)
        return game

    # ============ Randomness Service 回呼 ============

    @transactional
    def consume_random_number(
        self,
        db: Session,
        sender: str,
        request_id: str,
        seed: int
    ) -> bool:
        """
        Randomness Service 的回呼

        只有 request_id 與等待中回合的 request_id 相符時才生效：
        - 寫入 entropy
        - round_number + 1
        - 狀態 PROCESSING -> STARTED

        其餘情況（過期 id、重複回呼、遊戲不在 PROCESSING、seed 為 0）
        一律接受但不產生任何效果。

        返回：
            True 如果回呼生效，False 如果被忽略

        異常：
            NotRandomnessService: sender 不是 Randomness Service
        """
        if sender != self.randomness.address:
            raise NotRandomnessService(sender)

        game = GameRegistry.get_current_game(db, lock=True)
        if game is None or game.status != GameStatus.PROCESSING:
            logger.warning(f"Ignoring randomness {request_id}: no game awaiting randomness")
            return False

        next_round = game.round_number + 1
        round_obj = with_round_lock(game.id, next_round, db).one()
        if round_obj.request_id != request_id or round_obj.has_entropy:
            logger.warning(
                f"Ignoring stale randomness {request_id} for game {game.id} "
                f"round {next_round} (pending {round_obj.request_id})"
            )
            return False
        if int(seed) == 0:
            logger.warning(f"Ignoring zero seed for game {game.id} round {next_round}")
            return False

        round_obj.entropy = str(int(seed))
        request = db.query(RandomnessRequest).filter(
            RandomnessRequest.request_id == request_id
        ).first()
        if request is not None:
            request.status = RequestStatus.FULFILLED
            request.seed = round_obj.entropy
        record_event(
            db,
            game.id,
            "ENTROPY_SET",
            round_number=next_round,
            request_id=request_id,
            entropy=round_obj.entropy
        )

        game.round_number = next_round
        record_event(db, game.id, "ROUND_NUMBER_SET", round_number=next_round)
        GameStateMachine.transition(db, game, GameStatus.STARTED)

        logger.info(f"Game {game.id}: round {next_round} started")
        return True

    # ============ 內部 ============

    def _lock_for_operator(self, db: Session, game_id: int, operator: str) -> Game:
        now = self.clock()
        require_operator(self.operators, operator)
        game = GameRegistry.get_game(db, game_id, lock=True)
        require_operator_cooldown(game, self.operator_cooldown_seconds, now)
        game.last_operated_at = now
        return game

    def _request_random_number(
        self,
        db: Session,
        game: Game,
        operator: str,
        rearm: bool = False
    ) -> Round:
        """
        為下一回合請求亂數

        前置條件：
        - 下一回合尚未取得 entropy
        - 尚未送出請求（rearm=True 時允許覆蓋）

        流程：
        1. 透過 fee ledger 支付 Randomness Service 的費用（operator 付款）
        2. 送出請求，記錄 request_id
        3. 舊的請求標記為 SUPERSEDED
        """
        next_round = game.round_number + 1
        round_obj = with_round_lock(game.id, next_round, db).one()

        if round_obj.has_entropy:
            raise RandomNumberAlreadyRequested(
                f"Round {next_round} of game {game.id} already has entropy"
            )
        if round_obj.request_id and not rearm:
            raise RandomNumberAlreadyRequested(
                f"Round {next_round} of game {game.id} already requested {round_obj.request_id}"
            )

        db.query(RandomnessRequest).filter(
            RandomnessRequest.game_id == game.id,
            RandomnessRequest.round_number == next_round,
            RandomnessRequest.status == RequestStatus.PENDING
        ).update({RandomnessRequest.status: RequestStatus.SUPERSEDED}, synchronize_session="fetch")
        db.flush()

        fee = self.randomness.fee
        if fee > 0:
            self.fee_ledger.transfer_from(operator, self.randomness.fee_recipient, fee)
        request_id = self.randomness.request_random_number()

        round_obj.request_id = request_id
        db.add(RandomnessRequest(
            request_id=request_id,
            game_id=game.id,
            round_number=next_round,
            status=RequestStatus.PENDING
        ))
        record_event(
            db,
            game.id,
            "RANDOMNESS_REQUESTED",
            round_number=next_round,
            request_id=request_id
        )
        logger.info(f"Game {game.id}: randomness {request_id} requested for round {next_round}")
        return round_obj
