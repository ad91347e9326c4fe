"""Integration tests for the Celery configuration and order tasks."""

import pytest

from modules.core.models import EventStatus, OutboxEvent
from modules.orders.constants import OrderEffect

pytestmark = pytest.mark.integration


class TestCeleryConfig:
    def test_celery_app_is_importable(self):
        from config.celery import app

        assert app.main == "storefront"

    def test_celery_app_exported_from_init(self):
        from config import celery_app

        assert celery_app.main == "storefront"

    def test_celery_serializer_is_json(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_RESULT_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]

    def test_beat_schedules_order_tasks(self, settings):
        tasks = {entry["task"] for entry in settings.CELERY_BEAT_SCHEDULE.values()}
        assert tasks == {
            "orders.dispatch_pending_effects",
            "orders.check_pending_crypto_payments",
        }


class TestDispatchPendingEffectsTask:
    def test_retries_failed_effect(self, make_order, mailoutbox):
        from modules.orders.tasks import dispatch_pending_effects

        order = make_order()
        event = OutboxEvent.objects.create(
            aggregate_id=str(order.id),
            event_type=OrderEffect.CONFIRMATION_EMAIL,
            topic="orders",
            payload={"payment_method": "CREDIT_CARD"},
            status=EventStatus.FAILED,
            retry_count=1,
        )

        result = dispatch_pending_effects.delay()

        assert result.successful()
        assert result.result == {"dispatched": 1}
        event.refresh_from_db()
        assert event.status == EventStatus.PUBLISHED
        assert len(mailoutbox) == 1

    def test_skips_effects_out_of_attempts(self, make_order, mailoutbox):
        from modules.orders.tasks import dispatch_pending_effects

        order = make_order()
        OutboxEvent.objects.create(
            aggregate_id=str(order.id),
            event_type=OrderEffect.CONFIRMATION_EMAIL,
            topic="orders",
            status=EventStatus.FAILED,
            retry_count=5,
        )

        assert dispatch_pending_effects() == {"dispatched": 0}
        assert mailoutbox == []
