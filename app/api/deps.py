# app/api/deps.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.security import decode_access_token
from app.services.ranking_store import RankingStore
from app.services.notification_service import RankingNotifier, build_default_notifier

# JWT Bearer 토큰 스킴
security = HTTPBearer()

# 알림기는 설정으로 한 번만 구성
_notifier = build_default_notifier()

def get_current_user_id(
    token: HTTPAuthorizationCredentials = Depends(security)
) -> str:
    """JWT 토큰으로 현재 유저 ID 가져오기 (인증은 외부 IdP - 여기선 신뢰)"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="인증 정보가 올바르지 않습니다",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token.credentials)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    return user_id

def get_ranking_store(db: Session = Depends(get_db)) -> RankingStore:
    """요청 단위 랭킹 저장소"""
    return RankingStore(db)

def get_notifier() -> RankingNotifier:
    """커밋 후 알림기"""
    return _notifier
