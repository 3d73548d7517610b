# app/api/routes/rankings.py
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status

from app.api.deps import get_current_user_id, get_ranking_store, get_notifier
from app.core.errors import RankingError, RankingErrorKind
from app.models.ranking import TOP_RANK
from app.schemas.ranking import (
    RankingCreate,
    RankingUpdate,
    RankingSubmission,
    RankingSubmitResponse,
    RankingStatsSnapshot,
    RankingResponse,
    RankingListResponse,
    DishRankingsResponse,
    UserRankingsResponse,
)
from app.services import ranking_service, stats_service
from app.services.notification_service import RankingNotifier
from app.services.ranking_store import RankingStore, DISH_RANKINGS_LIMIT

router = APIRouter(prefix="/api/v1/rankings", tags=["랭킹"])

# 에러 종류 -> HTTP 상태
ERROR_STATUS = {
    RankingErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RankingErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    RankingErrorKind.CONFLICT_EXHAUSTED: status.HTTP_409_CONFLICT,
}

def _raise_for_error(error: RankingError):
    raise HTTPException(
        status_code=ERROR_STATUS.get(error.kind, status.HTTP_400_BAD_REQUEST),
        detail={"code": error.kind.value, "message": error.detail}
    )

@router.post("", response_model=RankingSubmitResponse, status_code=status.HTTP_201_CREATED)
def create_ranking(
    data: RankingCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    store: RankingStore = Depends(get_ranking_store),
    notifier: RankingNotifier = Depends(get_notifier)
):
    """랭킹 생성 (1위면 기존 1위는 2위로)"""
    submission = RankingSubmission(user_id=user_id, **data.model_dump())

    result = ranking_service.submit_ranking(store, submission)
    if not result.ok:
        _raise_for_error(result.error)

    # 알림은 응답 후에
    background_tasks.add_task(notifier.notify, result.events)
    return result.value

@router.put("/{ranking_id}", response_model=RankingSubmitResponse)
def update_ranking(
    ranking_id: str,
    data: RankingUpdate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    store: RankingStore = Depends(get_ranking_store),
    notifier: RankingNotifier = Depends(get_notifier)
):
    """랭킹 수정"""
    submission = RankingSubmission(user_id=user_id, ranking_id=ranking_id, **data.model_dump())

    result = ranking_service.submit_ranking(store, submission)
    if not result.ok:
        _raise_for_error(result.error)

    background_tasks.add_task(notifier.notify, result.events)
    return result.value

@router.delete("/{ranking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ranking(
    ranking_id: str,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    store: RankingStore = Depends(get_ranking_store),
    notifier: RankingNotifier = Depends(get_notifier)
):
    """랭킹 삭제 (본인 것만, 이력은 남음)"""
    result = ranking_service.delete_ranking(store, user_id, ranking_id)
    if not result.ok:
        _raise_for_error(result.error)

    background_tasks.add_task(notifier.notify, result.events)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/dishes/{dish_id}", response_model=DishRankingsResponse)
def get_dish_rankings(
    dish_id: str,
    limit: int = Query(DISH_RANKINGS_LIMIT, ge=1, le=DISH_RANKINGS_LIMIT),
    user_id: str = Depends(get_current_user_id),
    store: RankingStore = Depends(get_ranking_store)
):
    """요리별 랭킹 목록 (순위 높은 순, 최대 50개)"""
    rankings = store.list_dish_rankings(dish_id, limit=limit)

    return DishRankingsResponse(
        dish_id=dish_id,
        rankings=[RankingResponse.model_validate(r) for r in rankings],
        stats=stats_service.compute_dish_stats(store, dish_id)
    )

@router.get("/dishes/{dish_id}/stats", response_model=RankingStatsSnapshot)
def get_dish_stats(
    dish_id: str,
    store: RankingStore = Depends(get_ranking_store)
):
    """요리 랭킹 통계 (인증 불필요)"""
    return stats_service.compute_dish_stats(store, dish_id)

@router.get("/users/{user_id}", response_model=UserRankingsResponse)
def get_user_rankings(
    user_id: str,
    store: RankingStore = Depends(get_ranking_store)
):
    """다른 유저의 랭킹 (공개 프로필, 인증 불필요)"""
    rankings = [RankingResponse.model_validate(r) for r in store.list_user_rankings(user_id)]

    return UserRankingsResponse(
        user_id=user_id,
        rankings=rankings,
        top_rankings=[r for r in rankings if r.rank == TOP_RANK],
        stats=stats_service.compute_user_stats(store, user_id)
    )

@router.get("/me", response_model=RankingListResponse)
def get_my_rankings(
    top_only: bool = False,
    user_id: str = Depends(get_current_user_id),
    store: RankingStore = Depends(get_ranking_store)
):
    """내 랭킹 목록 (top_only=true 면 1위만)"""
    rankings = store.list_user_rankings(user_id, top_only=top_only)

    return RankingListResponse(
        rankings=[RankingResponse.model_validate(r) for r in rankings],
        total=len(rankings)
    )

@router.get("/me/stats", response_model=RankingStatsSnapshot)
def get_my_stats(
    user_id: str = Depends(get_current_user_id),
    store: RankingStore = Depends(get_ranking_store)
):
    """내 랭킹 통계"""
    return stats_service.compute_user_stats(store, user_id)

@router.get("/me/dishes/{dish_id}", response_model=RankingResponse)
def get_my_ranking_for_dish(
    dish_id: str,
    user_id: str = Depends(get_current_user_id),
    store: RankingStore = Depends(get_ranking_store)
):
    """특정 요리에 대한 내 랭킹"""
    ranking = store.get_user_ranking_for_dish(user_id, dish_id)
    if not ranking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="랭킹을 찾을 수 없습니다"
        )

    return ranking
