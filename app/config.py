# app/config.py
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator

class Settings(BaseSettings):
    """환경변수 설정"""

    # API 기본 설정
    app_name: str = "Bellyfed Ranking API"
    debug: bool = True

    # Database
    database_url: str

    # JWT (인증은 외부 - 토큰 디코드만)
    secret_key: str
    algorithm: str = "HS256"

    # 랭킹 트랜잭션 재시도
    ranking_max_attempts: int = 3
    ranking_retry_jitter_seconds: float = 0.05

    # 커밋 후 알림 (비어 있으면 로그만)
    analytics_webhook_url: Optional[str] = None
    search_webhook_url: Optional[str] = None
    webhook_timeout_seconds: float = 3.0

    # 로그
    log_dir: str = "logs"

    @field_validator('secret_key')
    def validate_secret_key(cls, v):
        if len(v) < 32:
            raise ValueError('SECRET_KEY는 최소 32자 이상이어야 합니다')
        return v

    @field_validator('ranking_max_attempts')
    def validate_max_attempts(cls, v):
        if v < 1:
            raise ValueError('RANKING_MAX_ATTEMPTS는 1 이상이어야 합니다')
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False

# 싱글톤 인스턴스
settings = Settings()
