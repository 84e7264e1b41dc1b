"""
服務層

這個 package 包含純計算邏輯與外部協作者的介面，不負責狀態轉換：
- elimination_service：每張票的存活判定
- prize_service：燒毀與獎金計算
- vote_service：最後一回合判定
- ledger_gateway / randomness_service / operator_service：外部協作者
"""
