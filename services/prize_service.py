"""
獎金服務：入場費燒毀與獎池結算

純計算邏輯，所有除法皆為 floor：
- 燒毀：floor(cost * size * burn_bps / 10000)
- 最終獎金：floor(max_prize_pool * prize_distribution_bps / 10000)
- 每張存活票獎金：floor(final_prize / survivor_count)

兩次 floor 造成的零頭（dust）留在獎池內，不做重新分配。
"""
from constants import BPS_DENOMINATOR


def calculate_ticket_cost(cost_per_ticket: int, size: int) -> int:
    return cost_per_ticket * size


def calculate_burn_amount(cost_per_ticket: int, size: int, burn_bps: int) -> int:
    """
    計算購票時要燒毀的數量

    範例：
        calculate_burn_amount(1, 1, 200) -> 0      # 1 * 200 / 10000 向下取整
        calculate_burn_amount(10**18, 10, 2000) -> 2 * 10**18
    """
    return calculate_ticket_cost(cost_per_ticket, size) * burn_bps // BPS_DENOMINATOR


def calculate_final_prize(max_prize_pool: int, prize_distribution_bps: int) -> int:
    return max_prize_pool * prize_distribution_bps // BPS_DENOMINATOR


def calculate_prize_per_survivor(final_prize: int, survivor_count: int) -> int:
    """
    沒有存活者時返回 0（遊戲照常結束，沒有任何人可以領獎）

    範例：
        calculate_prize_per_survivor(1000, 5) -> 200
        calculate_prize_per_survivor(1000, 0) -> 0
    """
    if survivor_count <= 0:
        return 0
    return final_prize // survivor_count


def calculate_claim_amount(prize_per_survivor: int, unit_count: int) -> int:
    return prize_per_survivor * unit_count
