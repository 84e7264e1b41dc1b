"""
Randomness Service（外部協作者）

合約：
- request_random_number() -> request_id（費用需先透過 Ledger Gateway 支付給 fee_recipient）
- 之後某個時間點，以 address 為 sender 回呼一次 fulfill(request_id, seed)

回呼是一則獨立的訊息：Round Engine 必須容忍它永遠不來（retry），
或帶著過期的 request_id 到達（靜默忽略）。
"""
import hashlib
import logging
import threading
from typing import Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

FulfillCallback = Callable[[str, str, int], object]


class RandomnessService(Protocol):
    address: str
    fee: int
    fee_recipient: str

    def request_random_number(self) -> str:
        ...


class InMemoryRandomnessService:
    """
    記憶體內的 Randomness Service

    request 只會排入佇列，必須呼叫 fulfill() 才會送出回呼，
    藉此模擬非同步、可能遺失的亂數服務。

    範例：
        service = InMemoryRandomnessService(address="vrf")
        service.bind(lambda sender, request_id, seed: ...)
        request_id = service.request_random_number()
        service.fulfill(request_id, seed=42)
    """

    def __init__(self, address: str, fee: int = 0, fee_recipient: Optional[str] = None):
        self.address = address
        self.fee = fee
        self.fee_recipient = fee_recipient or address
        self._callback: Optional[FulfillCallback] = None
        self._counter = 0
        self._pending: Dict[str, int] = {}
        self.requests: List[str] = []
        self._mutex = threading.Lock()

    def bind(self, callback: FulfillCallback) -> None:
        self._callback = callback

    def request_random_number(self) -> str:
        with self._mutex:
            self._counter += 1
            digest = hashlib.sha256(
                f"{self.address}|request|{self._counter}".encode("utf-8")
            ).hexdigest()
            request_id = f"0x{digest}"
            self._pending[request_id] = self._counter
            self.requests.append(request_id)
        logger.info(f"Randomness requested: {request_id}")
        return request_id

    @property
    def last_request_id(self) -> Optional[str]:
        return self.requests[-1] if self.requests else None

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    def fulfill(self, request_id: str, seed: int):
        """送出回呼；每個 request 只會回呼一次"""
        if self._callback is None:
            raise RuntimeError("Randomness service has no bound callback")
        with self._mutex:
            if request_id not in self._pending:
                raise ValueError(f"Unknown or already fulfilled request {request_id}")
            del self._pending[request_id]
        logger.info(f"Randomness fulfilled: {request_id}")
        return self._callback(self.address, request_id, seed)
