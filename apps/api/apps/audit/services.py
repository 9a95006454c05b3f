"""
Audit Trail Writer.

Every mutation to a clinical request, draft or review lock goes through
record_mutation(). Payloads are redacted here, before they reach the
database, so a caller cannot accidentally persist PHI.
"""
from apps.core.observability import metrics, get_sanitized_logger
from apps.core.redaction import count_redactions, sanitize

from .models import AuditEntry

logger = get_sanitized_logger(__name__)


class AuditTrailWriter:
    """Append-only writer for AuditEntry rows."""

    def append(self, actor_id, action_type, previous_state=None, new_state=None,
               metadata=None, request_id=None):
        """
        Sanitize and persist one audit entry.

        Runs inside the caller's transaction: if the mutation rolls back,
        so does its audit entry.
        """
        previous_clean = sanitize(previous_state or {})
        new_clean = sanitize(new_state or {})
        metadata_clean = sanitize(metadata or {})

        entry = AuditEntry.objects.create(
            request_id=request_id,
            actor_id=str(actor_id),
            action_type=action_type,
            previous_state=previous_clean,
            new_state=new_clean,
            metadata=metadata_clean,
        )

        redacted = sum(count_redactions(v) for v in (previous_clean, new_clean, metadata_clean))
        metrics.audit_entries_created_total.labels(action_type=action_type).inc()
        if redacted:
            metrics.audit_redacted_values_total.inc(redacted)

        logger.debug(
            'Audit entry recorded',
            extra={
                'event': 'audit_entry_created',
                'audit_entry_id': str(entry.id),
                'intake_id': str(request_id) if request_id else None,
                'action_type': action_type,
                'redacted_count': redacted,
            }
        )
        return entry


_default_writer = AuditTrailWriter()


def record_mutation(actor_id, action_type, previous_state, new_state, metadata=None, request_id=None):
    """
    Record a sanitized audit entry.

    Usage:
        record_mutation(
            actor_id=str(request.user.pk),
            action_type='status_change',
            previous_state={'status': 'in_review'},
            new_state={'status': 'approved'},
            request_id=intake.id,
        )
    """
    return _default_writer.append(
        actor_id,
        action_type,
        previous_state=previous_state,
        new_state=new_state,
        metadata=metadata,
        request_id=request_id,
    )
