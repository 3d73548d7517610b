# app/services/stats_service.py
from app.models.ranking import Ranking
from app.schemas.ranking import RankingStatsSnapshot
from app.services.ranking_store import RankingStore

def compute_dish_stats(store: RankingStore, dish_id: str) -> RankingStatsSnapshot:
    """요리별 랭킹 통계 (캐시 없음 - 매번 계산)"""
    return _to_snapshot(store.aggregate(Ranking.dish_id == dish_id))

def compute_user_stats(store: RankingStore, user_id: str) -> RankingStatsSnapshot:
    """유저별 랭킹 통계 (프로필용)"""
    return _to_snapshot(store.aggregate(Ranking.user_id == user_id))

def _to_snapshot(result: dict) -> RankingStatsSnapshot:
    return RankingStatsSnapshot(
        total_rankings=result["total"],
        average_rank=round(result["average"], 2),
        ranks=result["ranks"],
        taste_statuses=result["taste_statuses"]
    )
