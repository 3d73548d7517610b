# app/core/security.py
from typing import Optional
from jose import JWTError, jwt
from app.config import settings

def decode_access_token(token: str) -> Optional[dict]:
    """토큰 디코드 (실패 시 None). 토큰 발급은 외부 인증 서버 담당"""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
