# app/services/demotion_resolver.py
"""새 1위 등록 시 밀려날 랭킹 계산

순수 로직이다. 현재 스코프의 랭킹 행을 받아 어떤 행을 1위 -> 2위로
내릴지 계획(DemotionPlan)만 만들고, 적용은 코디네이터가 한다.

순위 사다리 전체를 다시 매기지 않는다. 직접 충돌하는 1위만 2위로 내린다.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from app.core.logger import logger
from app.models.ranking import Ranking, RankingScope, TOP_RANK, DEMOTED_RANK
from app.models.ranking_history import HistoryChangeType
from app.services.history_service import HistoryDraft


@dataclass(frozen=True)
class Demotion:
    ranking_id: str
    previous_rank: int
    new_rank: int
    history: HistoryDraft


@dataclass
class DemotionPlan:
    scope: RankingScope
    demotions: List[Demotion] = field(default_factory=list)
    integrity_warning: bool = False

    @property
    def ranking_ids(self) -> List[str]:
        return [d.ranking_id for d in self.demotions]

    def __bool__(self) -> bool:
        return bool(self.demotions)


def resolve_demotions(
    scope: RankingScope,
    scope_rankings: Iterable[Ranking],
    incoming_ranking_id: Optional[str],
    incoming_rank: Optional[int],
) -> DemotionPlan:
    """1위 충돌 해소 계획 생성"""
    plan = DemotionPlan(scope=scope)

    if incoming_rank != TOP_RANK:
        return plan

    conflicts = [
        r for r in scope_rankings
        if scope.contains(r) and r.rank == TOP_RANK and r.id != incoming_ranking_id
    ]

    # 불변식상 최대 1개. 그 이상이면 이전 버그 흔적 - 전부 내린다
    if len(conflicts) > 1:
        plan.integrity_warning = True
        logger.warning(
            f"⚠️ 무결성 경고: {scope} 에 1위 랭킹이 {len(conflicts)}개 존재 "
            f"({', '.join(r.id for r in conflicts)}) - 모두 {DEMOTED_RANK}위로 조정"
        )

    for ranking in conflicts:
        plan.demotions.append(Demotion(
            ranking_id=ranking.id,
            previous_rank=TOP_RANK,
            new_rank=DEMOTED_RANK,
            # 밀려난 랭킹 자신의 마지막 근거를 기록
            history=HistoryDraft(
                ranking_id=ranking.id,
                user_id=ranking.user_id,
                dish_id=ranking.dish_id,
                restaurant_id=ranking.restaurant_id,
                dish_type=ranking.dish_type,
                change_type=HistoryChangeType.DEMOTION,
                previous_rank=TOP_RANK,
                new_rank=DEMOTED_RANK,
                previous_taste_status=ranking.taste_status,
                new_taste_status=ranking.taste_status,
                notes=ranking.notes,
                photo_urls=list(ranking.photo_urls or []),
            ),
        ))

    return plan
