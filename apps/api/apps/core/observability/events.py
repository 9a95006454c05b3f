"""
Domain events logging helpers.

Provides structured event logging for clinical request operations.
"""
from typing import Dict, Optional
from .logging import get_sanitized_logger, sanitize_dict

logger = get_sanitized_logger(__name__)


def log_domain_event(
    event_name: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    entity_ids: Optional[Dict[str, str]] = None,
    result: str = 'success',
    **extra_fields
):
    """
    Log a domain event with structured data.

    Args:
        event_name: Name of the event (e.g., 'intake_transition', 'draft_approved')
        entity_type: Type of entity (e.g., 'Intake', 'Draft')
        entity_id: ID of primary entity
        entity_ids: Dictionary of related entity IDs
        result: Result of operation (success, blocked, duplicate, failure...)
        **extra_fields: Additional fields to log (will be sanitized)

    Example:
        log_domain_event(
            'intake_transition',
            entity_type='Intake',
            entity_id=str(intake.id),
            entity_ids={'intake_id': str(intake.id)},
            result='success',
            from_status='in_review',
            to_status='approved'
        )
    """
    event_data = {
        'event': event_name,
        'result': result,
    }

    if entity_type:
        event_data['entity_type'] = entity_type

    if entity_id:
        event_data['entity_id'] = entity_id

    if entity_ids:
        event_data.update(entity_ids)

    event_data.update(sanitize_dict(extra_fields))

    if result in ['failure', 'error']:
        logger.error(f'Domain event: {event_name}', extra=event_data)
    elif result in ['warning', 'blocked', 'conflict', 'contended']:
        logger.warning(f'Domain event: {event_name}', extra=event_data)
    else:
        logger.info(f'Domain event: {event_name}', extra=event_data)


def log_intake_transition(intake_id, from_status, to_status, actor_id, result='success', **extra):
    """Log intake status transition event."""
    log_domain_event(
        'intake_transition',
        entity_type='Intake',
        entity_id=str(intake_id),
        entity_ids={'intake_id': str(intake_id)},
        result=result,
        from_status=from_status,
        to_status=to_status,
        actor_id=str(actor_id),
        **extra
    )


def log_gate_blocked(intake_id, gate, target_status, actor_id):
    """Log a transition refused by a clinical policy gate."""
    log_domain_event(
        'intake_policy_gate_blocked',
        entity_type='Intake',
        entity_id=str(intake_id),
        entity_ids={'intake_id': str(intake_id)},
        result='blocked',
        gate_code=gate,
        to_status=target_status,
        actor_id=str(actor_id),
    )


def log_lock_contention(request_id, holder_id, requester_id, held_minutes):
    """Log a second clinician opening a request someone else is reviewing."""
    log_domain_event(
        'review_lock_contended',
        entity_type='Intake',
        entity_id=str(request_id),
        entity_ids={
            'intake_id': str(request_id),
            'holder_id': str(holder_id),
            'requester_id': str(requester_id),
        },
        result='contended',
        held_minutes=held_minutes,
    )


def log_refund_duplicate(intake_id, actor_id):
    """Log a repeated refund of an already refunded intake."""
    log_domain_event(
        'intake_refund_duplicate',
        entity_type='Intake',
        entity_id=str(intake_id),
        entity_ids={'intake_id': str(intake_id)},
        result='duplicate',
        actor_id=str(actor_id),
    )


def log_draft_decision(draft, decision, actor_id, **extra):
    """Log draft approval or rejection."""
    log_domain_event(
        f'draft_{decision}',
        entity_type='Draft',
        entity_id=str(draft.id),
        entity_ids={
            'draft_id': str(draft.id),
            'intake_id': str(draft.intake_id),
        },
        result='success',
        draft_type=draft.type,
        actor_id=str(actor_id),
        **extra
    )
