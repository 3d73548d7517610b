# app/services/ranking_validator.py
from typing import Optional
from app.core.errors import RankingError, RankingErrorKind
from app.models.ranking import TasteStatus, MIN_RANK, MAX_RANK
from app.schemas.ranking import RankingSubmission

TASTE_STATUS_VALUES = frozenset(s.value for s in TasteStatus)

def validate_submission(submission: RankingSubmission) -> Optional[RankingError]:
    """
    랭킹 제출 형태 검증 (I/O 없음)
    - 통과하면 None, 아니면 첫 번째 에러
    """
    rank = submission.rank
    taste_status = submission.taste_status

    # 1. rank / taste_status 중 정확히 하나
    if (rank is None) == (taste_status is None):
        return RankingError(
            RankingErrorKind.MUTUAL_EXCLUSIVITY_VIOLATION,
            "순위와 맛 평가 중 하나만 입력해야 합니다"
        )

    # 2. 순위 범위
    if rank is not None:
        if isinstance(rank, bool) or not isinstance(rank, int) or not MIN_RANK <= rank <= MAX_RANK:
            return RankingError(
                RankingErrorKind.RANK_OUT_OF_RANGE,
                f"순위는 {MIN_RANK}~{MAX_RANK} 사이여야 합니다"
            )

    # 3. 맛 평가 값
    if taste_status is not None and _status_value(taste_status) not in TASTE_STATUS_VALUES:
        return RankingError(
            RankingErrorKind.INVALID_TASTE_STATUS,
            f"맛 평가는 {', '.join(sorted(TASTE_STATUS_VALUES))} 중 하나여야 합니다"
        )

    # 4. 메모
    notes = submission.notes
    if not isinstance(notes, str) or not notes.strip():
        return RankingError(RankingErrorKind.MISSING_EVIDENCE, "메모를 입력해주세요")

    # 5. 사진
    if not submission.photo_urls:
        return RankingError(RankingErrorKind.MISSING_EVIDENCE, "사진을 1장 이상 첨부해주세요")

    # 6. 생성 시 스코프 정보 (수정 시에는 저장된 값 사용)
    if submission.ranking_id is None and not all(
        (submission.restaurant_id, submission.dish_type, submission.dish_id)
    ):
        return RankingError(RankingErrorKind.INCOMPLETE_SCOPE, "식당, 요리 종류, 요리 정보가 필요합니다")

    return None

def _status_value(taste_status) -> str:
    if isinstance(taste_status, TasteStatus):
        return taste_status.value
    return taste_status
