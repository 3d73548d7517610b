# app/models/ranking_history.py
from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, Enum as SQLEnum
from sqlalchemy.sql import func
from app.database import Base
from app.models.ranking import TasteStatus
import uuid
import enum

class HistoryChangeType(str, enum.Enum):
    """이력 종류"""
    CREATE = "create"
    UPDATE = "update"
    DEMOTION = "demotion"  # 새 1위 때문에 밀려남
    DELETION = "deletion"  # 유저가 삭제 (이력은 남김)

class RankingHistory(Base):
    """랭킹 변경 이력 (추가만, 수정/삭제 없음. 랭킹이 삭제돼도 남음)"""
    __tablename__ = "ranking_history"

    # 기본 필드
    id = Column("history_id", String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # 참조만 (FK 없음 - 라이브 랭킹과 독립적으로 보존)
    ranking_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    dish_id = Column(String, nullable=False, index=True)
    restaurant_id = Column(String, nullable=False)
    dish_type = Column(String, nullable=False)

    # 전이
    change_type = Column(SQLEnum(HistoryChangeType, native_enum=False, length=20), nullable=False)
    previous_rank = Column(Integer, nullable=True)
    new_rank = Column(Integer, nullable=True)
    previous_taste_status = Column(SQLEnum(TasteStatus, native_enum=False, length=20), nullable=True)
    new_taste_status = Column(SQLEnum(TasteStatus, native_enum=False, length=20), nullable=True)

    # 근거 (당시 값)
    notes = Column(Text, nullable=False)
    photo_urls = Column(JSON, nullable=False)

    # 타임스탬프
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<RankingHistory {self.change_type} {self.ranking_id}: {self.previous_rank} -> {self.new_rank}>"
