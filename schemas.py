"""
API 請求 / 回應模式
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.vote_aggregator import VoteChoice
from models import GameStatus


# ============ 請求 ============

class GameCreate(BaseModel):
    """建立遊戲（operator，身分由 X-API-Key 決定）"""
    cost_per_ticket: int = Field(ge=0, description="每張票價格")
    burn_bps: int = Field(description="每張票燒毀比例（bps）")
    prize_distribution_bps: List[int] = Field(description="每回合可分配的獎池比例（bps）")
    survival_bps: List[int] = Field(description="每回合每張票的存活機率（bps）")


class BuyRequest(BaseModel):
    """payer 為呼叫者本人；to 為票的持有者（預設為 payer）"""
    size: int
    to: Optional[str] = None


class VoteRequest(BaseModel):
    choice: VoteChoice


class ClaimRequest(BaseModel):
    to: Optional[str] = None


class RandomnessFulfill(BaseModel):
    """Randomness Service 的回呼（sender 由 X-Randomness-Key 認證）"""
    request_id: str
    seed: int


# ============ 回應 ============

class GameResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: GameStatus
    round_number: int
    cost_per_ticket: int
    burn_bps: int
    total_units: int
    max_prize_pool: int
    final_prize_per_survivor: int


class CurrentStatusResponse(BaseModel):
    game_id: Optional[int] = None
    status: GameStatus


class RoundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round_number: int
    prize_distribution_bps: int
    survival_bps: int
    continue_vote_count: int
    stop_vote_count: int
    survivor_count: int
    request_id: Optional[str] = None
    entropy: str


class UserRoundRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    game_id: int
    round_number: int
    participant_id: str
    remaining_unit_count: int
    remaining_vote_count: int
    claimed: bool


class ClaimResponse(BaseModel):
    amount: int


class FulfillResponse(BaseModel):
    applied: bool
