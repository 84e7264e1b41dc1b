"""
測試共用 fixtures

- 每個測試使用獨立的 in-memory SQLite（StaticPool 讓所有 Session 共用同一條連線）
- Ledger Gateway / Randomness Service 使用記憶體內實作
- GameDriver 封裝常見的前置流程（建立遊戲、購票、送出亂數）
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  註冊所有 table
from constants import DEFAULT_BURN_ACCOUNT, MAX_ROUND
from core.game_manager import GameManager
from database import Base
from services.ledger_gateway import InMemoryLedger
from services.operator_service import StaticOperatorRegistry
from services.randomness_service import InMemoryRandomnessService

POOL = "survival-game-pool"
OPERATOR = "operator"
ALICE = "alice"
BOB = "bob"
VRF = "vrf-coordinator"

TICKET_PRICE = 10**18
BURN_BPS = 2000
PRIZE_DISTRIBUTION_BPS = [1000, 2000, 3000, 4000, 6000, 8000]
SURVIVAL_BPS = [1000] * MAX_ROUND
GUARANTEE_BPS = [10000] * MAX_ROUND
INITIAL_BALANCE = 1000 * TICKET_PRICE


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ledger():
    ledger = InMemoryLedger(POOL)
    for holder in (ALICE, BOB, OPERATOR):
        ledger.mint(holder, INITIAL_BALANCE)
    return ledger


@pytest.fixture
def randomness():
    return InMemoryRandomnessService(address=VRF)


@pytest.fixture
def clock():
    return FakeClock()


def build_manager(ledger, randomness, clock, **kwargs):
    options = dict(
        burn_account=DEFAULT_BURN_ACCOUNT,
        max_buy_limit=100,
        clock=clock
    )
    options.update(kwargs)
    return GameManager(
        ledger=ledger,
        randomness=randomness,
        operators=StaticOperatorRegistry([OPERATOR]),
        **options
    )


@pytest.fixture
def manager(db, ledger, randomness, clock):
    manager = build_manager(ledger, randomness, clock)
    randomness.bind(
        lambda sender, request_id, seed: manager.engine.consume_random_number(
            db, sender, request_id, seed
        )
    )
    return manager


class GameDriver:
    """把多步驟的前置流程收在一起，讓測試只關注要驗證的那一步"""

    def __init__(self, db, manager, ledger, randomness):
        self.db = db
        self.manager = manager
        self.ledger = ledger
        self.randomness = randomness

    def create(
        self,
        cost_per_ticket=TICKET_PRICE,
        burn_bps=BURN_BPS,
        prize_distribution_bps=PRIZE_DISTRIBUTION_BPS,
        survival_bps=GUARANTEE_BPS
    ):
        game = self.manager.registry.create(
            self.db,
            OPERATOR,
            cost_per_ticket,
            burn_bps,
            list(prize_distribution_bps),
            list(survival_bps)
        )
        return game.id

    def buy(self, game_id, participant, size):
        game = self.manager.registry.get_game(self.db, game_id)
        self.ledger.approve(participant, POOL, game.cost_per_ticket * size)
        return self.manager.tickets.buy(self.db, game_id, participant, size)

    def start(self, game_id, seed=0xC0FFEE):
        """start 並送出第 1 回合的亂數"""
        self.manager.engine.start(self.db, game_id, OPERATOR)
        return self.fulfill(seed)

    def fulfill(self, seed=0xC0FFEE):
        return self.randomness.fulfill(self.randomness.last_request_id, seed)

    def next_round(self, game_id, seed=0xBEEF):
        """processing 並送出下一回合的亂數"""
        self.manager.engine.processing(self.db, game_id, OPERATOR)
        return self.fulfill(seed)

    def game(self, game_id):
        return self.manager.registry.get_game(self.db, game_id)

    def round(self, game_id, round_number):
        return self.manager.registry.get_round(self.db, game_id, round_number)

    def record(self, game_id, round_number, participant):
        return self.manager.registry.get_user_record(self.db, game_id, round_number, participant)


@pytest.fixture
def driver(db, manager, ledger, randomness):
    return GameDriver(db, manager, ledger, randomness)
