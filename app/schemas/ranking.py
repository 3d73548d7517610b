# app/schemas/ranking.py
from pydantic import BaseModel, Field, StrictInt
from datetime import datetime
from typing import Dict, List, Optional

from app.models.ranking import TasteStatus

class RankingSubmission(BaseModel):
    """코어에 들어가는 랭킹 제출 (검증 전 원본 값)"""
    user_id: str
    restaurant_id: Optional[str] = None  # 수정 시에는 저장된 값 사용
    dish_type: Optional[str] = None
    dish_id: Optional[str] = None
    ranking_id: Optional[str] = None  # None 이면 생성
    rank: Optional[StrictInt] = None  # true/false 는 1/0 으로 바꾸지 않음
    taste_status: Optional[str] = None
    notes: Optional[str] = None
    photo_urls: Optional[List[str]] = None

    @property
    def is_create(self) -> bool:
        return self.ranking_id is None

class RankingCreate(BaseModel):
    """랭킹 생성 요청"""
    restaurant_id: str = Field(..., min_length=1)
    dish_type: str = Field(..., min_length=1)
    dish_id: str = Field(..., min_length=1)
    rank: Optional[StrictInt] = None
    taste_status: Optional[str] = None
    notes: Optional[str] = None
    photo_urls: Optional[List[str]] = None

class RankingUpdate(BaseModel):
    """랭킹 수정 요청"""
    rank: Optional[StrictInt] = None
    taste_status: Optional[str] = None
    notes: Optional[str] = None
    photo_urls: Optional[List[str]] = None

class AppliedValue(BaseModel):
    """최종 적용된 값"""
    rank: Optional[int] = None
    taste_status: Optional[TasteStatus] = None

class DemotionResult(BaseModel):
    """밀려난 랭킹"""
    ranking_id: str
    previous_rank: int
    new_rank: int

class RankingStatsSnapshot(BaseModel):
    """랭킹 통계 (매번 다시 계산)"""
    total_rankings: int = 0
    average_rank: float = 0.0
    ranks: Dict[str, int]  # "1" ~ "5"
    taste_statuses: Dict[str, int]  # ACCEPTABLE / SECOND_CHANCE / DISSATISFIED

class RankingSubmitResponse(BaseModel):
    """랭킹 제출 응답"""
    ranking_id: str
    dish_id: str
    created: bool
    applied_value: AppliedValue
    demotions: List[DemotionResult]
    stats: Optional[RankingStatsSnapshot] = None  # 커밋 후 통계 계산 실패 시 None

class RankingResponse(BaseModel):
    """랭킹 조회 응답"""
    ranking_id: str
    user_id: str
    restaurant_id: str
    dish_type: str
    dish_id: str
    rank: Optional[int] = None
    taste_status: Optional[TasteStatus] = None
    notes: str
    photo_urls: List[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RankingListResponse(BaseModel):
    """내 랭킹 목록 응답"""
    rankings: List[RankingResponse]
    total: int

class DishRankingsResponse(BaseModel):
    """요리별 랭킹 목록 + 통계"""
    dish_id: str
    rankings: List[RankingResponse]
    stats: RankingStatsSnapshot

class UserRankingsResponse(BaseModel):
    """유저 프로필 랭킹 (전체 / 1위 / 통계)"""
    user_id: str
    rankings: List[RankingResponse]
    top_rankings: List[RankingResponse]
    stats: RankingStatsSnapshot
