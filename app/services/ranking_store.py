# app/services/ranking_store.py
"""랭킹 저장소

세션을 주입받아 랭킹/이력 테이블 접근을 모은다. 트랜잭션 경계
(commit/rollback)는 코디네이터가 정하고, 여기서는 flush 까지만 한다.
"""
from typing import List, Optional, Sequence

from sqlalchemy import case, func
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.models.ranking import Ranking, RankingScope, TasteStatus, MIN_RANK, MAX_RANK, TOP_RANK
from app.models.ranking_history import RankingHistory

RANK_BUCKETS = tuple(range(MIN_RANK, MAX_RANK + 1))

DISH_RANKINGS_LIMIT = 50

# 재시도하면 풀리는 충돌만
SCOPE_TOP_INDEX = "uq_dish_rankings_scope_top"
SQLITE_SCOPE_UNIQUE = "UNIQUE constraint failed: dish_rankings.user_id, dish_rankings.restaurant_id, dish_rankings.dish_type"
PG_CONFLICT_CODES = frozenset({"40001", "40P01"})  # serialization_failure, deadlock_detected
SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked")


def is_write_conflict(error: DBAPIError) -> bool:
    """
    동시 쓰기 때문에 난 에러인지 판별
    - 1위 부분 유니크 인덱스 위반
    - PostgreSQL 직렬화 실패 / 데드락
    - SQLite 잠금
    스키마 오류, 연결 실패, 다른 제약 위반은 False
    """
    orig = error.orig
    message = str(orig) if orig is not None else str(error)

    if getattr(orig, "pgcode", None) in PG_CONFLICT_CODES:
        return True

    if isinstance(error, IntegrityError):
        return SCOPE_TOP_INDEX in message or SQLITE_SCOPE_UNIQUE in message

    if isinstance(error, OperationalError):
        return any(m in message for m in SQLITE_LOCK_MESSAGES)

    return False


class RankingStore:

    def __init__(self, db: Session):
        self.db = db

    # ===== 쓰기 경로 (트랜잭션 내부) =====

    def get_for_update(self, ranking_id: str) -> Optional[Ranking]:
        """랭킹 1건 조회 + 행 잠금"""
        return self.db.query(Ranking)\
            .filter(Ranking.id == ranking_id)\
            .with_for_update()\
            .populate_existing()\
            .first()

    def lock_scope(self, scope: RankingScope) -> List[Ranking]:
        """스코프 안의 랭킹 전부 조회 + 행 잠금 (다른 스코프는 건드리지 않음)"""
        return self.db.query(Ranking)\
            .filter(
                Ranking.user_id == scope.user_id,
                Ranking.restaurant_id == scope.restaurant_id,
                Ranking.dish_type == scope.dish_type
            )\
            .order_by(Ranking.created_at, Ranking.id)\
            .with_for_update()\
            .populate_existing()\
            .all()

    def add_ranking(self, ranking: Ranking) -> Ranking:
        self.db.add(ranking)
        self.db.flush()
        return ranking

    def save_ranking(self, ranking: Ranking) -> Ranking:
        """값 변경이 없어도 updated_at 은 갱신"""
        ranking.updated_at = func.now()
        self.db.flush()
        return ranking

    def demote(self, ranking_ids: Sequence[str], new_rank: int) -> None:
        """1위 랭킹들을 new_rank 로 내림"""
        if not ranking_ids:
            return
        for ranking_id in ranking_ids:
            ranking = self.db.get(Ranking, ranking_id)
            ranking.rank = new_rank
            ranking.updated_at = func.now()
        # 새 1위를 쓰기 전에 먼저 반영 (부분 유니크 인덱스)
        self.db.flush()

    def delete_user_ranking(self, user_id: str, ranking_id: str) -> Optional[Ranking]:
        """본인 랭킹만 잠그고 삭제 (이력은 그대로 남김). 없거나 남의 것이면 None"""
        ranking = self.db.query(Ranking)\
            .filter(Ranking.id == ranking_id, Ranking.user_id == user_id)\
            .with_for_update()\
            .populate_existing()\
            .first()
        if ranking is None:
            return None

        self.db.delete(ranking)
        self.db.flush()
        return ranking

    def add_history(self, entries: Sequence[RankingHistory]) -> None:
        self.db.add_all(entries)
        self.db.flush()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ===== 읽기 경로 =====

    def get(self, ranking_id: str) -> Optional[Ranking]:
        return self.db.query(Ranking).filter(Ranking.id == ranking_id).first()

    def get_user_ranking_for_dish(self, user_id: str, dish_id: str) -> Optional[Ranking]:
        return self.db.query(Ranking)\
            .filter(Ranking.user_id == user_id, Ranking.dish_id == dish_id)\
            .order_by(Ranking.updated_at.desc())\
            .first()

    def list_user_rankings(self, user_id: str, top_only: bool = False) -> List[Ranking]:
        query = self.db.query(Ranking).filter(Ranking.user_id == user_id)
        if top_only:
            query = query.filter(Ranking.rank == TOP_RANK)
        return query.order_by(Ranking.updated_at.desc(), Ranking.id).all()

    def list_dish_rankings(self, dish_id: str, limit: int = DISH_RANKINGS_LIMIT) -> List[Ranking]:
        """요리별 랭킹 목록 (순위 높은 순, 맛 평가만 있는 건 뒤로)"""
        return self.db.query(Ranking)\
            .filter(Ranking.dish_id == dish_id)\
            .order_by(Ranking.rank.is_(None), Ranking.rank, Ranking.updated_at.desc(), Ranking.id)\
            .limit(limit)\
            .all()

    def list_history(self, ranking_id: str) -> List[RankingHistory]:
        return self.db.query(RankingHistory)\
            .filter(RankingHistory.ranking_id == ranking_id)\
            .order_by(RankingHistory.created_at)\
            .all()

    def aggregate(self, *criteria) -> dict:
        """count / avg / 순위별 / 맛 평가별 집계 (SQL 한 번)"""
        columns = [
            func.count(Ranking.id).label("total"),
            func.avg(Ranking.rank).label("average"),
        ]
        columns += [
            func.sum(case((Ranking.rank == n, 1), else_=0)).label(f"rank_{n}")
            for n in RANK_BUCKETS
        ]
        columns += [
            func.sum(case((Ranking.taste_status == s, 1), else_=0)).label(f"status_{s.value}")
            for s in TasteStatus
        ]

        row = self.db.query(*columns).filter(*criteria).one()

        return {
            "total": row.total or 0,
            "average": float(row.average) if row.average is not None else 0.0,
            "ranks": {str(n): int(getattr(row, f"rank_{n}") or 0) for n in RANK_BUCKETS},
            "taste_statuses": {
                s.value: int(getattr(row, f"status_{s.value}") or 0) for s in TasteStatus
            },
        }
