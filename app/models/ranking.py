# app/models/ranking.py
from typing import NamedTuple
from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, Index, CheckConstraint, Enum as SQLEnum, text
from sqlalchemy.sql import func
from app.database import Base
import uuid
import enum

MIN_RANK = 1
MAX_RANK = 5
TOP_RANK = 1
DEMOTED_RANK = 2  # 1위에서 밀려난 랭킹의 자리

class TasteStatus(str, enum.Enum):
    """순위 대신 남기는 맛 평가"""
    ACCEPTABLE = "ACCEPTABLE"        # 괜찮음
    SECOND_CHANCE = "SECOND_CHANCE"  # 한 번 더 먹어볼 만함
    DISSATISFIED = "DISSATISFIED"    # 불만족

class Ranking(Base):
    """유저의 (식당, 요리 종류) 랭킹 모델"""
    __tablename__ = "dish_rankings"

    # 기본 필드
    id = Column("ranking_id", String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False)

    # 스코프: (user_id, restaurant_id, dish_type)
    restaurant_id = Column(String, nullable=False)
    dish_type = Column(String, nullable=False)
    dish_id = Column(String, nullable=False, index=True)  # 스코프에 포함 안 됨

    # 값: rank 또는 taste_status 중 정확히 하나
    rank = Column(Integer, nullable=True)
    taste_status = Column(SQLEnum(TasteStatus, native_enum=False, length=20), nullable=True)

    # 근거
    notes = Column(Text, nullable=False)
    photo_urls = Column(JSON, nullable=False)  # ["https://...", ...]

    # 타임스탬프
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            f"rank IS NULL OR (rank >= {MIN_RANK} AND rank <= {MAX_RANK})",
            name="ck_dish_rankings_rank_range"
        ),
        CheckConstraint(
            "(rank IS NULL) <> (taste_status IS NULL)",
            name="ck_dish_rankings_rank_xor_status"
        ),
        Index("idx_dish_rankings_scope", "user_id", "restaurant_id", "dish_type"),
        # 스코프당 1위는 하나만
        Index(
            "uq_dish_rankings_scope_top",
            "user_id", "restaurant_id", "dish_type",
            unique=True,
            sqlite_where=text(f"rank = {TOP_RANK}"),
            postgresql_where=text(f"rank = {TOP_RANK}")
        ),
    )

    @property
    def ranking_id(self) -> str:
        return self.id

    @property
    def scope(self) -> "RankingScope":
        return RankingScope(self.user_id, self.restaurant_id, self.dish_type)

    def __repr__(self):
        value = self.rank if self.rank is not None else self.taste_status
        return f"<Ranking {self.id} {self.dish_type}@{self.restaurant_id} = {value}>"


class RankingScope(NamedTuple):
    """1위 유일성의 범위"""
    user_id: str
    restaurant_id: str
    dish_type: str

    def contains(self, ranking: Ranking) -> bool:
        return (
            ranking.user_id == self.user_id
            and ranking.restaurant_id == self.restaurant_id
            and ranking.dish_type == self.dish_type
        )
