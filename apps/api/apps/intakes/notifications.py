"""
Status notification hook.

The lifecycle calls StatusNotifier.notify_status_changed() after a
successful transition. Dispatch is deferred to transaction.on_commit() and
is fire-and-forget: a broker outage is logged, never raised into the state
machine.
"""
from django.db import transaction

from apps.core.observability import get_sanitized_logger
from apps.core.observability.correlation import get_request_id

from .models import IntakeStatusChoices

logger = get_sanitized_logger(__name__)

# Statuses the patient is told about
NOTIFY_ON_STATUSES = frozenset({
    IntakeStatusChoices.APPROVED,
    IntakeStatusChoices.DECLINED,
    IntakeStatusChoices.PENDING_INFO,
    IntakeStatusChoices.COMPLETED,
    IntakeStatusChoices.CANCELLED,
})


class StatusNotifier:
    """Enqueue a Celery task per patient-visible status change."""

    def notify_status_changed(self, intake, from_status, to_status, actor_id):
        if to_status not in NOTIFY_ON_STATUSES:
            return

        payload = {
            'intake_id': str(intake.id),
            'from_status': from_status,
            'to_status': to_status,
            'actor_id': str(actor_id),
            'category': intake.category,
            'request_id': get_request_id(),
        }
        transaction.on_commit(lambda: self._enqueue(payload))

    def _enqueue(self, payload):
        from .tasks import dispatch_status_notification

        try:
            dispatch_status_notification.delay(**payload)
        except Exception as e:
            logger.error(
                'Failed to enqueue status notification',
                extra={
                    'event': 'status_notification_enqueue_failed',
                    'intake_id': payload['intake_id'],
                    'to_status': payload['to_status'],
                    'exception_type': e.__class__.__name__,
                }
            )
