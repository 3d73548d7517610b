"""Tests for ranking store queries and write-conflict detection"""
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.models.ranking import Ranking, TasteStatus
from app.models.ranking_history import RankingHistory, HistoryChangeType
from app.services.ranking_store import is_write_conflict
from conftest import make_ranking, count_rows


class _PgError(Exception):
    """psycopg2 에러처럼 pgcode 를 가진 DBAPI 예외"""

    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode


class TestIsWriteConflict:

    def test_real_duplicate_top_is_conflict(self, db_session):
        make_ranking(db_session, rank=1)

        with pytest.raises(IntegrityError) as exc_info:
            make_ranking(db_session, rank=1)
        db_session.rollback()

        assert is_write_conflict(exc_info.value)

    def test_postgres_scope_index_violation(self):
        error = IntegrityError(
            "INSERT", {},
            _PgError('duplicate key value violates unique constraint "uq_dish_rankings_scope_top"', "23505")
        )
        assert is_write_conflict(error)

    def test_other_integrity_errors_are_not_conflicts(self):
        error = IntegrityError("INSERT", {}, Exception("CHECK constraint failed: ck_dish_rankings_rank_range"))
        assert not is_write_conflict(error)

    @pytest.mark.parametrize("pgcode", ["40001", "40P01"])
    def test_serialization_failure_and_deadlock(self, pgcode):
        error = OperationalError("UPDATE", {}, _PgError("could not serialize access", pgcode))
        assert is_write_conflict(error)

    def test_sqlite_lock(self):
        error = OperationalError("COMMIT", {}, Exception("database is locked"))
        assert is_write_conflict(error)

    @pytest.mark.parametrize("message", [
        "no such table: ranking_history",
        "could not connect to server: Connection refused",
    ])
    def test_permanent_failures_are_not_conflicts(self, message):
        error = OperationalError("INSERT", {}, Exception(message))
        assert not is_write_conflict(error)

    def test_other_postgres_operational_error(self):
        error = OperationalError("INSERT", {}, _PgError("relation does not exist", "42P01"))
        assert not is_write_conflict(error)


class TestDeleteUserRanking:

    def test_deletes_own_ranking(self, store, db_session, fresh_session):
        ranking_id = make_ranking(db_session, user_id="owner").id

        deleted = store.delete_user_ranking("owner", ranking_id)
        assert deleted.id == ranking_id
        store.commit()

        assert fresh_session().get(Ranking, ranking_id) is None

    def test_other_users_ranking_untouched(self, store, db_session, fresh_session):
        ranking = make_ranking(db_session, user_id="owner")

        assert store.delete_user_ranking("intruder", ranking.id) is None
        store.commit()

        assert fresh_session().get(Ranking, ranking.id) is not None

    def test_history_rows_are_not_removed(self, store, db_session, fresh_session):
        ranking = make_ranking(db_session, user_id="owner")
        db_session.add(RankingHistory(
            ranking_id=ranking.id, user_id="owner", dish_id=ranking.dish_id,
            restaurant_id=ranking.restaurant_id, dish_type=ranking.dish_type,
            change_type=HistoryChangeType.CREATE, new_rank=1, notes="great", photo_urls=["p1"]
        ))
        db_session.commit()
        ranking_id = ranking.id

        store.delete_user_ranking("owner", ranking_id)
        store.commit()

        assert count_rows(fresh_session(), RankingHistory, ranking_id=ranking_id) == 1


class TestListDishRankings:

    def test_ordered_by_rank_with_statuses_last(self, store, db_session):
        make_ranking(db_session, user_id="u1", dish_id="dish-1", rank=None, taste_status=TasteStatus.ACCEPTABLE)
        make_ranking(db_session, user_id="u2", dish_id="dish-1", rank=3)
        make_ranking(db_session, user_id="u3", dish_id="dish-1", rank=1)
        make_ranking(db_session, user_id="u4", dish_id="dish-2", rank=1)

        rankings = store.list_dish_rankings("dish-1")

        assert [(r.user_id, r.rank) for r in rankings] == [("u3", 1), ("u2", 3), ("u1", None)]

    def test_limit(self, store, db_session):
        for i in range(4):
            make_ranking(db_session, user_id=f"u{i}", dish_id="dish-1", rank=2)

        assert len(store.list_dish_rankings("dish-1", limit=3)) == 3
