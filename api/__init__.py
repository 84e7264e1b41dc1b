"""
API 層

只負責 HTTP <-> 業務邏輯的轉換：
- games：operator 推進遊戲
- players：購票、check、投票、領獎
- randomness：Randomness Service 回呼
"""
