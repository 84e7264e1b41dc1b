"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理所有 Game 狀態轉換
- Registry / Round Engine：管理 Game 與 Round 的生命週期
- Elimination Resolver / Vote Aggregator / Prize Ledger：check、投票、結算
- Event Log：記錄所有重要事件
- Locks / Guards：並發控制與入口檢查
"""
