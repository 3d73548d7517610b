# app/core/errors.py
"""랭킹 코어 에러 종류

코어 서비스는 예외 대신 RankingError 를 결과에 담아 돌려준다.
HTTP 상태 코드 매핑은 API 레이어가 담당한다.
"""
import enum
from dataclasses import dataclass


class RankingErrorKind(str, enum.Enum):
    """에러 종류"""
    # ValidationError 계열
    MUTUAL_EXCLUSIVITY_VIOLATION = "mutual_exclusivity_violation"
    RANK_OUT_OF_RANGE = "rank_out_of_range"
    INVALID_TASTE_STATUS = "invalid_taste_status"
    MISSING_EVIDENCE = "missing_evidence"
    INCOMPLETE_SCOPE = "incomplete_scope"  # 생성 시 식당/요리 정보 누락
    # 저장소 계열
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT_EXHAUSTED = "conflict_exhausted"


VALIDATION_KINDS = frozenset({
    RankingErrorKind.MUTUAL_EXCLUSIVITY_VIOLATION,
    RankingErrorKind.RANK_OUT_OF_RANGE,
    RankingErrorKind.INVALID_TASTE_STATUS,
    RankingErrorKind.MISSING_EVIDENCE,
    RankingErrorKind.INCOMPLETE_SCOPE,
})


@dataclass(frozen=True)
class RankingError:
    kind: RankingErrorKind
    detail: str

    @property
    def is_validation_error(self) -> bool:
        return self.kind in VALIDATION_KINDS

    @property
    def is_retryable(self) -> bool:
        """호출자가 그대로 다시 보내도 되는 에러인지"""
        return self.kind == RankingErrorKind.CONFLICT_EXHAUSTED
