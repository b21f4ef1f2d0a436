"""
알림 디스패처

코어 서비스는 커밋 이후에만 이벤트를 발행하며, 발행 실패는 로그로만 남깁니다.
SQS 큐가 설정되어 있으면 백그라운드 스레드 풀에서 전송합니다.
"""

import json
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Literal, Optional

import boto3
from pydantic import BaseModel, Field

from coinapi.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class NotificationEvent(BaseModel):
    event_type: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CoinsCreditedEvent(NotificationEvent):
    event_type: Literal["coins.credited"] = "coins.credited"
    wallet_address: str
    coin_type: str
    amount: int
    balance_after: int
    source_type: str
    transaction_id: int


class TournamentSettledEvent(NotificationEvent):
    event_type: Literal["tournament.settled"] = "tournament.settled"
    tournament_id: int
    settlement_reference: Optional[str] = None
    winners: List[str] = Field(default_factory=list)
    total_distributed: int = 0


class Notifier(ABC):
    """알림기 베이스 클래스"""

    @abstractmethod
    def publish(self, event: NotificationEvent) -> None:
        ...


class NullNotifier(Notifier):
    def publish(self, event: NotificationEvent) -> None:
        return None


class LoggingNotifier(Notifier):
    """기본 알림기 - 이벤트를 로그로만 남김"""

    def publish(self, event: NotificationEvent) -> None:
        logger.info(f"[notify] {event.event_type}: {event.model_dump_json()}")


class SQSNotifier(Notifier):
    def __init__(self, queue_url: str, settings: Settings, max_workers: int = 2):
        self.queue_url = queue_url
        self.sqs = boto3.client(
            "sqs",
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            endpoint_url=settings.SQS_ENDPOINT_URL,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notifier"
        )

    def _send(self, event: NotificationEvent) -> None:
        try:
            self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(event.model_dump(mode="json")),
                MessageAttributes={
                    "event_type": {"DataType": "String", "StringValue": event.event_type}
                },
            )
        except Exception as e:
            logger.error(f"Failed to send {event.event_type} notification: {str(e)}")

    def publish(self, event: NotificationEvent) -> None:
        try:
            self._executor.submit(self._send, event)
        except RuntimeError as e:
            # 종료 중인 executor
            logger.error(f"Notification dropped ({event.event_type}): {str(e)}")


def publish_safely(notifier: Optional[Notifier], event: NotificationEvent) -> None:
    """알림 실패가 호출자에게 전파되지 않도록 감싸서 발행"""
    if notifier is None:
        return
    try:
        notifier.publish(event)
    except Exception as e:
        logger.error(f"Notifier {type(notifier).__name__} failed: {str(e)}")


def build_notifier(settings: Optional[Settings] = None) -> Notifier:
    """설정에 맞는 알림기 생성 (컨테이너에서 싱글톤으로 관리)"""
    settings = settings or default_settings
    if not settings.NOTIFICATIONS_ENABLED:
        return NullNotifier()
    if settings.SQS_NOTIFICATION_QUEUE_URL:
        return SQSNotifier(settings.SQS_NOTIFICATION_QUEUE_URL, settings)
    return LoggingNotifier()
