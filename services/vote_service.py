"""
投票服務：判斷回合是否為最後一回合

純計算邏輯，不涉及狀態轉換
"""
from constants import MAX_ROUND


def is_stop_majority(continue_vote_count: int, stop_vote_count: int) -> bool:
    """stop 票嚴格多於 continue 票才算通過（平手繼續）"""
    return stop_vote_count > continue_vote_count


def is_final_round(
    round_number: int,
    survivor_count: int,
    continue_vote_count: int,
    stop_vote_count: int,
    max_round: int = MAX_ROUND
) -> bool:
    """
    判斷剛結束的回合是否為最後一回合

    規則（任一成立即結束）：
    - stop 票多於 continue 票
    - 已經是最後一回合（round_number == max_round）
    - 本回合沒有任何存活者

    範例：
        is_final_round(2, 10, 3, 7) -> True   # 投票停止
        is_final_round(6, 10, 7, 3) -> True   # 最後一回合
        is_final_round(2, 0, 0, 0)  -> True   # 沒有存活者
        is_final_round(2, 10, 5, 5) -> False
    """
    if is_stop_majority(continue_vote_count, stop_vote_count):
        return True
    if round_number >= max_round:
        return True
    return survivor_count == 0
