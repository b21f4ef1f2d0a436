from unittest.mock import MagicMock, Mock, patch

import pytest

from coinapi.config import settings
from coinapi.providers.notifications import (
    CoinsCreditedEvent,
    LoggingNotifier,
    Notifier,
    NullNotifier,
    SQSNotifier,
    TournamentSettledEvent,
    build_notifier,
    publish_safely,
)


def _credited_event():
    return CoinsCreditedEvent(
        wallet_address="0x" + "1" * 40,
        coin_type="EXPERIENCE",
        amount=100,
        balance_after=100,
        source_type="DEPOSIT",
        transaction_id=1,
    )


class TestBuildNotifier:
    def test_disabled(self):
        disabled = settings.model_copy(update={"NOTIFICATIONS_ENABLED": False})

        assert isinstance(build_notifier(disabled), NullNotifier)

    def test_logging_without_queue(self):
        enabled = settings.model_copy(
            update={"NOTIFICATIONS_ENABLED": True, "SQS_NOTIFICATION_QUEUE_URL": None}
        )

        assert isinstance(build_notifier(enabled), LoggingNotifier)

    @patch("coinapi.providers.notifications.boto3.client")
    def test_sqs_with_queue(self, mock_client):
        enabled = settings.model_copy(
            update={
                "NOTIFICATIONS_ENABLED": True,
                "SQS_NOTIFICATION_QUEUE_URL": "https://sqs.local/queue/coin-events",
            }
        )

        notifier = build_notifier(enabled)

        assert isinstance(notifier, SQSNotifier)
        assert notifier.queue_url == "https://sqs.local/queue/coin-events"
        mock_client.assert_called_once()


class TestSQSNotifier:
    @patch("coinapi.providers.notifications.boto3.client")
    def test_publish_sends_message(self, mock_client):
        sqs = MagicMock()
        mock_client.return_value = sqs
        notifier = SQSNotifier("https://sqs.local/queue/coin-events", settings)

        notifier.publish(
            TournamentSettledEvent(tournament_id=7, winners=["0x" + "2" * 40], total_distributed=900)
        )
        notifier._executor.shutdown(wait=True)

        sqs.send_message.assert_called_once()
        kwargs = sqs.send_message.call_args.kwargs
        assert kwargs["QueueUrl"] == "https://sqs.local/queue/coin-events"
        assert '"tournament_id": 7' in kwargs["MessageBody"]
        assert kwargs["MessageAttributes"]["event_type"]["StringValue"] == "tournament.settled"

    @patch("coinapi.providers.notifications.logger")
    @patch("coinapi.providers.notifications.boto3.client")
    def test_send_failure_is_logged(self, mock_client, mock_logger):
        sqs = MagicMock()
        sqs.send_message.side_effect = Exception("queue unavailable")
        mock_client.return_value = sqs
        notifier = SQSNotifier("https://sqs.local/queue/coin-events", settings)

        notifier.publish(_credited_event())
        notifier._executor.shutdown(wait=True)

        mock_logger.error.assert_called_once()
        assert "queue unavailable" in mock_logger.error.call_args[0][0]

    @patch("coinapi.providers.notifications.boto3.client")
    def test_publish_after_shutdown_is_dropped(self, mock_client):
        notifier = SQSNotifier("https://sqs.local/queue/coin-events", settings)
        notifier._executor.shutdown(wait=True)

        notifier.publish(_credited_event())

        mock_client.return_value.send_message.assert_not_called()


def test_publish_safely_swallows_errors():
    notifier = Mock()
    notifier.publish.side_effect = RuntimeError("boom")

    publish_safely(notifier, _credited_event())

    notifier.publish.assert_called_once()


def test_publish_safely_without_notifier():
    publish_safely(None, _credited_event())


def test_notifier_requires_publish():
    class Incomplete(Notifier):
        pass

    with pytest.raises(TypeError):
        Notifier()
    with pytest.raises(TypeError):
        Incomplete()
    assert isinstance(NullNotifier(), Notifier)
