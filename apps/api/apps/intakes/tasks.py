"""
Celery tasks for intake notifications.
"""
from celery import shared_task

from apps.core.observability import get_sanitized_logger
from apps.core.observability.correlation import request_context

from .signals import request_status_changed

logger = get_sanitized_logger(__name__)


@shared_task(name='apps.intakes.tasks.dispatch_status_notification')
def dispatch_status_notification(intake_id, from_status, to_status, actor_id, category=None, request_id=None):
    """
    Fan a committed status change out to request_status_changed receivers.

    Args:
        intake_id: Intake UUID (string)
        from_status: Status before the change
        to_status: Status after the change
        actor_id: Clinician who made the change
        category: Intake category
        request_id: Correlation id of the originating HTTP request
    """
    with request_context(request_id=request_id, user_id=actor_id):
        responses = request_status_changed.send_robust(
            sender=None,
            intake_id=intake_id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            category=category,
        )

        failures = [r for _, r in responses if isinstance(r, Exception)]
        for error in failures:
            logger.error(
                'Status notification receiver failed',
                extra={
                    'event': 'status_notification_receiver_failed',
                    'intake_id': intake_id,
                    'to_status': to_status,
                    'exception_type': error.__class__.__name__,
                }
            )

    return {'intake_id': intake_id, 'receivers': len(responses), 'failed': len(failures)}
