"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

分類：
- 授權（AuthorizationError）：呼叫者沒有權限
- 狀態（GameStateError）：遊戲狀態不允許此操作
- 驗證（GameValidationError）：輸入參數不合法
- 順序（SequencingError）：操作順序錯誤（尚未 check、重複投票...）
- 結算（SettlementError）：領獎相關錯誤

所有異常都會讓該次呼叫整體 rollback。
"""


class SurvivalGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ 授權 ============

class AuthorizationError(SurvivalGameException):
    pass


class NotOperator(AuthorizationError):
    """呼叫者不具備 operator 權限"""
    def __init__(self, caller):
        self.caller = caller
        super().__init__(f"{caller} is not an operator")


class NotRandomnessService(AuthorizationError):
    """亂數回呼不是由 Randomness Service 發出"""
    def __init__(self, sender):
        self.sender = sender
        super().__init__(f"{sender} is not the randomness service")


class OperatorCooldown(AuthorizationError):
    """operator 在冷卻時間內連續操作"""
    pass


# ============ 狀態 ============

class GameStateError(SurvivalGameException):
    pass


class GameNotFound(GameStateError):
    """遊戲不存在"""
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class WrongGameStatus(GameStateError):
    """目前的遊戲狀態不允許此操作"""
    def __init__(self, current, expected):
        self.current = current
        self.expected = expected
        super().__init__(
            f"Wrong game status to proceed operation: {current}, expected {expected}"
        )


class InvalidStateTransition(GameStateError):
    """非法的狀態轉換"""
    pass


# ============ 驗證 ============

class GameValidationError(SurvivalGameException):
    pass


class InvalidDistributionBps(GameValidationError):
    """獎金分配 bps 不合法（必須落在 (0, 10000]）"""
    pass


class InvalidSurvivalBps(InvalidDistributionBps):
    """存活機率 bps 不合法（必須落在 (0, 10000]）"""
    pass


class InvalidBurnBps(InvalidDistributionBps):
    """燒毀比例 bps 不合法（必須落在 [0, 10000]）"""
    pass


class ZeroSize(GameValidationError):
    """購買數量必須大於 0"""
    pass


class ExceedsBuyLimit(GameValidationError):
    """超過購買上限"""
    pass


# ============ 順序 ============

class SequencingError(SurvivalGameException):
    pass


class NoUnitsToCheck(SequencingError):
    """上一回合沒有剩餘的票可以 check"""
    pass


class EntropyNotReady(SequencingError):
    """本回合尚未取得亂數"""
    pass


class NoRemainingVotes(SequencingError):
    """沒有剩餘票數可以投票"""
    pass


class RandomNumberAlreadyRequested(SequencingError):
    """本回合已經請求過亂數"""
    pass


class ReentrantCall(SequencingError):
    """同一呼叫者在轉帳期間重入同一個入口"""
    def __init__(self, entry_point, caller):
        self.entry_point = entry_point
        self.caller = caller
        super().__init__(f"Reentrant call to {entry_point} by {caller}")


# ============ 結算 ============

class SettlementError(SurvivalGameException):
    pass


class AlreadyClaimed(SettlementError):
    """獎金已經領取過了"""
    pass


class NoReward(SettlementError):
    """沒有可領取的獎金（沒有存活的票）"""
    pass


# ============ 外部協作者 ============

class LedgerError(SurvivalGameException):
    """Ledger Gateway 轉帳失敗（餘額或授權不足）"""
    pass
