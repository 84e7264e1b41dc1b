"""
Ledger Gateway：入場費代幣的帳本（外部協作者）

核心只依賴以下呼叫合約：
- transfer_from(sender, recipient, amount)：從 sender 扣款（需事先 approve 給本帳戶）
- transfer(recipient, amount)：從本帳戶（獎池）轉出
- balance_of(holder)

餘額或授權不足時必須明確拋出 LedgerError，不可靜默失敗。

InMemoryLedger 是參考實作，供本地執行與測試使用。
"""
import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, Optional, Protocol

from core.exceptions import LedgerError

logger = logging.getLogger(__name__)


class LedgerGateway(Protocol):
    account: str

    def transfer_from(self, sender: str, recipient: str, amount: int) -> None:
        ...

    def transfer(self, recipient: str, amount: int) -> None:
        ...

    def balance_of(self, holder: str) -> int:
        ...


class InMemoryLedger:
    """
    記憶體內帳本

    參數：
        account: 本 gateway 代表的帳戶（獎池），transfer 與 transfer_from 的 spender
        on_transfer: 每次轉帳完成後的 hook，(sender, recipient, amount)
    """

    def __init__(
        self,
        account: str,
        on_transfer: Optional[Callable[[str, str, int], None]] = None
    ):
        self.account = account
        self.on_transfer = on_transfer
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[tuple, int] = defaultdict(int)
        self._mutex = threading.RLock()

    def mint(self, holder: str, amount: int) -> None:
        with self._mutex:
            self._balances[holder] += amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        with self._mutex:
            self._allowances[(owner, spender)] = amount

    def allowance(self, owner: str, spender: str) -> int:
        with self._mutex:
            return self._allowances[(owner, spender)]

    def balance_of(self, holder: str) -> int:
        with self._mutex:
            return self._balances[holder]

    def transfer(self, recipient: str, amount: int) -> None:
        self._move(self.account, recipient, amount)

    def transfer_from(self, sender: str, recipient: str, amount: int) -> None:
        with self._mutex:
            allowed = self._allowances[(sender, self.account)]
            if allowed < amount:
                raise LedgerError(
                    f"Transfer amount {amount} exceeds allowance {allowed} of {sender}"
                )
            self._move(sender, recipient, amount)
            self._allowances[(sender, self.account)] = allowed - amount

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise LedgerError(f"Negative transfer amount {amount}")
        with self._mutex:
            balance = self._balances[sender]
            if balance < amount:
                raise LedgerError(
                    f"Transfer amount {amount} exceeds balance {balance} of {sender}"
                )
            self._balances[sender] = balance - amount
            self._balances[recipient] += amount
        logger.debug(f"Ledger transfer {sender} -> {recipient}: {amount}")
        if self.on_transfer:
            self.on_transfer(sender, recipient, amount)
