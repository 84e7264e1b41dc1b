"""
Operator 權限（外部管理）

核心只需要一個 predicate：is_operator(caller) -> bool
"""
from typing import Iterable, Protocol


class OperatorRegistry(Protocol):
    def is_operator(self, caller: str) -> bool:
        ...


class StaticOperatorRegistry:
    """以固定名單判斷 operator（名單來自 Settings.operators）"""

    def __init__(self, operators: Iterable[str]):
        self._operators = frozenset(operators)

    def is_operator(self, caller: str) -> bool:
        return caller in self._operators
