"""
淘汰服務：每張票的存活判定

純計算邏輯，不涉及狀態轉換

每張票的存活值：
    roll = SHA-256("entropy|game_id|participant_id|nonce") mod 10000
    survives  <=>  roll < survival_bps

因此存活機率 = survival_bps / 10000（basis points 刻度）。
給定相同的 entropy 與 nonce 序列，結果完全可重現，方便稽核過去的遊戲。
"""
import hashlib
from typing import Tuple

from constants import BPS_DENOMINATOR


def unit_roll(entropy: int, game_id: int, participant_id: str, nonce: int) -> int:
    """
    計算單張票的亂數值（落在 [0, 10000)）

    參數：
        entropy: 本回合的亂數 seed
        game_id: 遊戲 id
        participant_id: 參與者
        nonce: 參與者的遞增 nonce

    返回：
        0 ~ 9999 的整數
    """
    message = f"{entropy}|{game_id}|{participant_id}|{nonce}".encode("utf-8")
    digest = hashlib.sha256(message).hexdigest()
    return int(digest, 16) % BPS_DENOMINATOR


def survives(
    entropy: int,
    game_id: int,
    participant_id: str,
    nonce: int,
    survival_bps: int
) -> bool:
    return unit_roll(entropy, game_id, participant_id, nonce) < survival_bps


def count_survivors(
    entropy: int,
    game_id: int,
    participant_id: str,
    start_nonce: int,
    unit_count: int,
    survival_bps: int
) -> Tuple[int, int]:
    """
    對參與者的 unit_count 張票逐張判定

    每張票使用一個新的 nonce（start_nonce, start_nonce + 1, ...）。

    返回：
        (存活張數, 下一個可用的 nonce)

    範例：
        survival_bps = 10000 時全部存活：
        count_survivors(e, 1, "alice", 0, 10, 10000) -> (10, 10)
    """
    survivors = 0
    nonce = start_nonce
    for _ in range(unit_count):
        if survives(entropy, game_id, participant_id, nonce, survival_bps):
            survivors += 1
        nonce += 1
    return survivors, nonce
