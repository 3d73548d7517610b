# app/services/ranking_service.py
"""랭킹 제출 코디네이터

검증 -> 스코프 잠금/조회 -> 밀어내기 계산 -> 쓰기 -> 이력 추가 를
하나의 트랜잭션으로 실행한다. 동시 쓰기 충돌(1위 유니크 인덱스 위반,
직렬화 실패/데드락, DB 잠금)이 나면 롤백 후 처음부터 다시 실행하고,
재시도를 다 쓰면 CONFLICT_EXHAUSTED 를 돌려준다. 그 밖의 DB 에러는
롤백 후 그대로 올린다.

외부 알림과 통계 계산은 커밋 이후에만 한다.
"""
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_random

from app.config import settings
from app.core.errors import RankingError, RankingErrorKind
from app.core.logger import logger
from app.models.ranking import Ranking, RankingScope, TasteStatus, TOP_RANK, DEMOTED_RANK
from app.models.ranking_history import HistoryChangeType
from app.schemas.ranking import (
    RankingSubmission,
    RankingSubmitResponse,
    RankingStatsSnapshot,
    AppliedValue,
    DemotionResult,
)
from app.services.demotion_resolver import DemotionPlan, resolve_demotions
from app.services.history_service import HistoryDraft, append_history, append_many
from app.services.notification_service import (
    RankingEvent,
    RankingNotifier,
    EVENT_CREATED,
    EVENT_UPDATED,
    EVENT_DEMOTED,
    EVENT_DELETED,
)
from app.services.ranking_store import RankingStore, is_write_conflict
from app.services.ranking_validator import validate_submission
from app.services.stats_service import compute_dish_stats


class WriteConflict(Exception):
    """재시도 가능한 쓰기 충돌"""


@dataclass
class RankingResult:
    """제출 결과 - value 또는 error 중 하나

    events 는 커밋된 변경의 알림 이벤트 (notifier 를 안 넘긴 호출자가 직접 보냄)
    """
    value: Optional[RankingSubmitResponse] = None
    error: Optional[RankingError] = None
    events: List[RankingEvent] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _Applied:
    ranking_id: str = ""
    dish_id: str = ""
    created: bool = False
    rank: Optional[int] = None
    taste_status: Optional[TasteStatus] = None
    demotions: List[DemotionResult] = field(default_factory=list)
    events: List[RankingEvent] = field(default_factory=list)
    error: Optional[RankingError] = None


def submit_ranking(
    store: RankingStore,
    submission: RankingSubmission,
    notifier: Optional[RankingNotifier] = None
) -> RankingResult:
    """랭킹 생성/수정 (유일한 쓰기 진입점)"""

    # 검증 실패 시 저장소 접근 없음
    error = validate_submission(submission)
    if error:
        logger.info(f"랭킹 검증 실패 (user={submission.user_id}): {error.kind.value}")
        return RankingResult(error=error)

    work = _apply_create if submission.is_create else _apply_update
    applied = _run_with_retries(store, lambda: work(store, submission), submission.user_id)

    if applied.error:
        return RankingResult(error=applied.error)

    logger.info(
        f"✅ 랭킹 {'생성' if applied.created else '수정'} {applied.ranking_id} "
        f"(user={submission.user_id}, rank={applied.rank}, status={applied.taste_status}, "
        f"demotions={len(applied.demotions)})"
    )

    # ===== 커밋 이후 =====
    if notifier is not None:
        notifier.notify(applied.events)

    return RankingResult(
        value=RankingSubmitResponse(
            ranking_id=applied.ranking_id,
            dish_id=applied.dish_id,
            created=applied.created,
            applied_value=AppliedValue(rank=applied.rank, taste_status=applied.taste_status),
            demotions=applied.demotions,
            stats=_stats_after_commit(store, applied.dish_id)
        ),
        events=applied.events
    )


def delete_ranking(
    store: RankingStore,
    user_id: str,
    ranking_id: str,
    notifier: Optional[RankingNotifier] = None
) -> RankingResult:
    """본인 랭킹 삭제 (이력은 남기고 삭제 이력 1건 추가, 빈 1위 자리는 채우지 않음)"""
    applied = _run_with_retries(store, lambda: _apply_delete(store, user_id, ranking_id), user_id)

    if applied.error:
        return RankingResult(error=applied.error)

    logger.info(f"🗑️ 랭킹 삭제 {applied.ranking_id} (user={user_id}, rank={applied.rank})")

    if notifier is not None:
        notifier.notify(applied.events)

    return RankingResult(events=applied.events)


def _run_with_retries(store: RankingStore, work: Callable[[], _Applied], user_id: str) -> _Applied:
    """충돌이면 처음부터 다시 (최대 ranking_max_attempts 번)"""
    try:
        for attempt in Retrying(
            stop=stop_after_attempt(settings.ranking_max_attempts),
            wait=wait_random(0, settings.ranking_retry_jitter_seconds),
            retry=retry_if_exception_type(WriteConflict),
            before_sleep=_log_retry,
            reraise=True
        ):
            with attempt:
                applied = _attempt_once(store, work)
    except WriteConflict as e:
        logger.error(
            f"❌ 랭킹 쓰기 충돌 재시도 초과 (user={user_id}, "
            f"attempts={settings.ranking_max_attempts}): {e}"
        )
        return _Applied(error=RankingError(
            RankingErrorKind.CONFLICT_EXHAUSTED,
            "동시에 요청이 많아 저장하지 못했습니다. 잠시 후 다시 시도해주세요"
        ))

    return applied


def _attempt_once(store: RankingStore, work: Callable[[], _Applied]) -> _Applied:
    """한 번의 트랜잭션 시도"""
    try:
        applied = work()

        if applied.error:
            store.rollback()
        else:
            store.commit()
        return applied

    except (IntegrityError, OperationalError) as e:
        store.rollback()
        if is_write_conflict(e):
            raise WriteConflict(str(e.orig) if e.orig is not None else str(e)) from e
        logger.error(f"❌ 랭킹 쓰기 실패 (재시도 안 함): {e}")
        raise
    except BaseException:
        # 취소 포함 - 부분 쓰기 없음
        store.rollback()
        raise


def _stats_after_commit(store: RankingStore, dish_id: str) -> Optional[RankingStatsSnapshot]:
    """쓰기는 이미 커밋됨 - 통계 실패는 응답을 막지 않음"""
    try:
        return compute_dish_stats(store, dish_id)
    except SQLAlchemyError as e:
        store.rollback()
        logger.exception(f"랭킹 통계 계산 실패 (dish={dish_id}): {e}")
        return None


def _apply_create(store: RankingStore, submission: RankingSubmission) -> _Applied:
    scope = RankingScope(submission.user_id, submission.restaurant_id, submission.dish_type)
    scope_rankings = store.lock_scope(scope)

    ranking = Ranking(
        id=str(uuid.uuid4()),
        user_id=submission.user_id,
        restaurant_id=submission.restaurant_id,
        dish_type=submission.dish_type,
        dish_id=submission.dish_id,
        rank=submission.rank,
        taste_status=_to_status(submission.taste_status),
        notes=submission.notes,
        photo_urls=list(submission.photo_urls)
    )

    plan = resolve_demotions(scope, scope_rankings, ranking.id, ranking.rank)
    demoted_events = _apply_plan(store, plan, scope_rankings)

    store.add_ranking(ranking)

    primary = _primary_draft(ranking, HistoryChangeType.CREATE, None, None)
    append_many(store, [primary] + [d.history for d in plan.demotions])

    return _Applied(
        ranking_id=ranking.id,
        dish_id=ranking.dish_id,
        created=True,
        rank=ranking.rank,
        taste_status=ranking.taste_status,
        demotions=_demotion_results(plan),
        events=[RankingEvent.from_ranking(EVENT_CREATED, ranking)] + demoted_events
    )


def _apply_update(store: RankingStore, submission: RankingSubmission) -> _Applied:
    ranking = store.get(submission.ranking_id)

    if ranking is None:
        return _Applied(error=RankingError(RankingErrorKind.NOT_FOUND, "랭킹을 찾을 수 없습니다"))

    # 소유자/스코프는 변하지 않으므로 잠금 전에 확인
    if ranking.user_id != submission.user_id:
        logger.warning(
            f"다른 유저의 랭킹 수정 시도 (ranking={ranking.id}, owner={ranking.user_id}, "
            f"user={submission.user_id})"
        )
        return _Applied(error=RankingError(RankingErrorKind.FORBIDDEN, "권한이 없습니다"))

    # 1위 요청이면 스코프 전체를 잠그고 (자기 행 포함), 아니면 자기 행만
    scope_rankings = []
    if submission.rank == TOP_RANK:
        scope_rankings = store.lock_scope(ranking.scope)
    else:
        store.get_for_update(ranking.id)

    previous_rank = ranking.rank
    previous_status = ranking.taste_status

    # 새로 1위에 오를 때만 밀어내기
    plan = DemotionPlan(scope=ranking.scope)
    demoted_events = []
    if submission.rank == TOP_RANK and previous_rank != TOP_RANK:
        plan = resolve_demotions(ranking.scope, scope_rankings, ranking.id, TOP_RANK)
        demoted_events = _apply_plan(store, plan, scope_rankings)

    ranking.rank = submission.rank
    ranking.taste_status = _to_status(submission.taste_status)
    ranking.notes = submission.notes
    ranking.photo_urls = list(submission.photo_urls)
    store.save_ranking(ranking)

    # 값이 같아도 이력은 남김 (제출 로그)
    primary = _primary_draft(ranking, HistoryChangeType.UPDATE, previous_rank, previous_status)
    append_many(store, [primary] + [d.history for d in plan.demotions])

    return _Applied(
        ranking_id=ranking.id,
        dish_id=ranking.dish_id,
        created=False,
        rank=ranking.rank,
        taste_status=ranking.taste_status,
        demotions=_demotion_results(plan),
        events=[RankingEvent.from_ranking(EVENT_UPDATED, ranking)] + demoted_events
    )


def _apply_delete(store: RankingStore, user_id: str, ranking_id: str) -> _Applied:
    ranking = store.get(ranking_id)

    if ranking is None:
        return _Applied(error=RankingError(RankingErrorKind.NOT_FOUND, "랭킹을 찾을 수 없습니다"))

    if ranking.user_id != user_id:
        logger.warning(
            f"다른 유저의 랭킹 삭제 시도 (ranking={ranking.id}, owner={ranking.user_id}, user={user_id})"
        )
        return _Applied(error=RankingError(RankingErrorKind.FORBIDDEN, "삭제 권한이 없습니다"))

    deleted = store.delete_user_ranking(user_id, ranking_id)
    if deleted is None:
        # 조회와 잠금 사이에 이미 삭제됨
        return _Applied(error=RankingError(RankingErrorKind.NOT_FOUND, "랭킹을 찾을 수 없습니다"))

    # 커밋 전에 값 확보 (커밋 후 삭제된 객체는 세션에서 빠짐)
    event = RankingEvent.from_ranking(EVENT_DELETED, deleted)
    append_history(store, HistoryDraft(
        ranking_id=deleted.id,
        user_id=deleted.user_id,
        dish_id=deleted.dish_id,
        restaurant_id=deleted.restaurant_id,
        dish_type=deleted.dish_type,
        change_type=HistoryChangeType.DELETION,
        previous_rank=deleted.rank,
        new_rank=None,
        previous_taste_status=deleted.taste_status,
        new_taste_status=None,
        notes=deleted.notes,
        photo_urls=list(deleted.photo_urls)
    ))

    return _Applied(
        ranking_id=deleted.id,
        dish_id=deleted.dish_id,
        rank=deleted.rank,
        taste_status=deleted.taste_status,
        events=[event]
    )


def _apply_plan(store: RankingStore, plan: DemotionPlan, scope_rankings: List[Ranking]) -> List[RankingEvent]:
    """계획 적용 + 알림 이벤트 생성"""
    if not plan:
        return []

    store.demote(plan.ranking_ids, DEMOTED_RANK)

    by_id = {r.id: r for r in scope_rankings}
    for d in plan.demotions:
        logger.info(f"⬇️  랭킹 {d.ranking_id} {d.previous_rank}위 -> {d.new_rank}위 (scope={plan.scope})")

    return [
        RankingEvent.from_ranking(EVENT_DEMOTED, by_id[d.ranking_id], rank=d.new_rank)
        for d in plan.demotions
    ]


def _primary_draft(ranking: Ranking, change_type, previous_rank, previous_status) -> HistoryDraft:
    return HistoryDraft(
        ranking_id=ranking.id,
        user_id=ranking.user_id,
        dish_id=ranking.dish_id,
        restaurant_id=ranking.restaurant_id,
        dish_type=ranking.dish_type,
        change_type=change_type,
        previous_rank=previous_rank,
        new_rank=ranking.rank,
        previous_taste_status=previous_status,
        new_taste_status=ranking.taste_status,
        notes=ranking.notes,
        photo_urls=list(ranking.photo_urls)
    )


def _demotion_results(plan: DemotionPlan) -> List[DemotionResult]:
    return [
        DemotionResult(ranking_id=d.ranking_id, previous_rank=d.previous_rank, new_rank=d.new_rank)
        for d in plan.demotions
    ]


def _to_status(value) -> Optional[TasteStatus]:
    if value is None:
        return None
    return TasteStatus(value)


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"⚠️ 랭킹 쓰기 충돌 - 재시도 {retry_state.attempt_number}/{settings.ranking_max_attempts}: {exc}"
    )

