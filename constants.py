"""
遊戲規則常數

這些值定義了 Survival Game 的公開規則。
修改它們會改變所有新遊戲的玩法，必須公開公告。
"""

# 每場遊戲固定的最大回合數
MAX_ROUND = 6

# Basis points 分母（10000 bps = 100%）
BPS_DENOMINATOR = 10_000

# 燒毀帳戶：轉入此帳戶的代幣視為永久銷毀
DEFAULT_BURN_ACCOUNT = "0x000000000000000000000000000000000000dEaD"

# 尚未取得亂數的回合，entropy 以 "0" 表示
EMPTY_ENTROPY = "0"
