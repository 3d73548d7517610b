# app/services/notification_service.py
"""커밋 이후 알림 (분석/검색 인덱스)

랭킹 쓰기가 원본 데이터다. 알림은 best-effort 이고, 실패해도 로그만 남긴다.
API 에서는 응답을 보낸 뒤 BackgroundTasks 로 보낸다 (웹훅 지연이 응답에 안 붙음).
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

import httpx

from app.config import settings
from app.core.logger import logger

EVENT_CREATED = "ranking.created"
EVENT_UPDATED = "ranking.updated"
EVENT_DEMOTED = "ranking.demoted"
EVENT_DELETED = "ranking.deleted"

USER_AGENT = "BellyfedRanking/1.0"


@dataclass(frozen=True)
class RankingEvent:
    event_type: str
    ranking_id: str
    user_id: str
    dish_id: str
    restaurant_id: str
    dish_type: str
    rank: Optional[int]
    taste_status: Optional[str]
    occurred_at: str

    @classmethod
    def from_ranking(cls, event_type: str, ranking, rank=None, taste_status=None) -> "RankingEvent":
        status = taste_status if taste_status is not None else ranking.taste_status
        return cls(
            event_type=event_type,
            ranking_id=ranking.id,
            user_id=ranking.user_id,
            dish_id=ranking.dish_id,
            restaurant_id=ranking.restaurant_id,
            dish_type=ranking.dish_type,
            rank=rank if rank is not None else ranking.rank,
            taste_status=getattr(status, "value", status),
            occurred_at=datetime.now(timezone.utc).isoformat(),
        )

    def to_payload(self) -> dict:
        return asdict(self)


RankingSink = Callable[[RankingEvent], None]


def log_sink(event: RankingEvent) -> None:
    """기본 싱크 - 로그만"""
    logger.info(
        f"📣 {event.event_type} ranking={event.ranking_id} dish={event.dish_id} "
        f"rank={event.rank} status={event.taste_status}"
    )


class WebhookSink:
    """이벤트를 JSON 으로 POST"""

    def __init__(self, name: str, url: str, timeout: float = 3.0, client: Optional[httpx.Client] = None):
        self.name = name
        self.url = url
        self.timeout = timeout
        self.client = client

    def __call__(self, event: RankingEvent) -> None:
        headers = {"User-Agent": USER_AGENT, "X-Event-Type": event.event_type}
        if self.client is not None:
            response = self.client.post(self.url, json=event.to_payload(), headers=headers, timeout=self.timeout)
        else:
            response = httpx.post(self.url, json=event.to_payload(), headers=headers, timeout=self.timeout)
        response.raise_for_status()

    def __repr__(self):
        return f"<WebhookSink {self.name} {self.url}>"


class RankingNotifier:
    """등록된 싱크로 이벤트 전달 (실패는 삼킴)"""

    def __init__(self, sinks: Optional[Iterable[RankingSink]] = None):
        self.sinks: List[RankingSink] = list(sinks or [])

    def add_sink(self, sink: RankingSink) -> None:
        self.sinks.append(sink)

    def notify(self, events: Iterable[RankingEvent]) -> int:
        """전달 실패 건수 반환"""
        failures = 0
        for event in events:
            for sink in self.sinks:
                try:
                    sink(event)
                except Exception as e:
                    failures += 1
                    logger.exception(
                        f"알림 전송 실패 ({sink!r}, {event.event_type}, {event.ranking_id}): {e}"
                    )
        return failures


def build_default_notifier() -> RankingNotifier:
    """설정 기반 기본 알림기"""
    notifier = RankingNotifier([log_sink])

    if settings.analytics_webhook_url:
        notifier.add_sink(WebhookSink("analytics", settings.analytics_webhook_url, settings.webhook_timeout_seconds))
    if settings.search_webhook_url:
        notifier.add_sink(WebhookSink("search", settings.search_webhook_url, settings.webhook_timeout_seconds))

    return notifier
