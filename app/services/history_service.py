# app/services/history_service.py
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, TYPE_CHECKING

from app.models.ranking import TasteStatus
from app.models.ranking_history import RankingHistory, HistoryChangeType

if TYPE_CHECKING:
    from app.services.ranking_store import RankingStore


@dataclass(frozen=True)
class HistoryDraft:
    """아직 저장 안 된 이력 한 줄"""
    ranking_id: str
    user_id: str
    dish_id: str
    restaurant_id: str
    dish_type: str
    change_type: HistoryChangeType
    previous_rank: Optional[int]
    new_rank: Optional[int]
    previous_taste_status: Optional[TasteStatus]
    new_taste_status: Optional[TasteStatus]
    notes: str
    photo_urls: List[str] = field(default_factory=list)

    def to_model(self) -> RankingHistory:
        return RankingHistory(
            ranking_id=self.ranking_id,
            user_id=self.user_id,
            dish_id=self.dish_id,
            restaurant_id=self.restaurant_id,
            dish_type=self.dish_type,
            change_type=self.change_type,
            previous_rank=self.previous_rank,
            new_rank=self.new_rank,
            previous_taste_status=self.previous_taste_status,
            new_taste_status=self.new_taste_status,
            notes=self.notes,
            photo_urls=list(self.photo_urls),
        )


def append_history(store: "RankingStore", draft: HistoryDraft) -> RankingHistory:
    """이력 1건 추가 (커밋은 호출자 트랜잭션)"""
    entry = draft.to_model()
    store.add_history([entry])
    return entry


def append_many(store: "RankingStore", drafts: Iterable[HistoryDraft]) -> List[RankingHistory]:
    """이력 여러 건을 한 번에 추가"""
    entries = [d.to_model() for d in drafts]
    if entries:
        store.add_history(entries)
    return entries
