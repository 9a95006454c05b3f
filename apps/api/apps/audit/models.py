"""
Audit trail models.

AuditEntry is append-only: the only write path is
apps.audit.services.record_mutation(), which sanitizes every payload.
"""
import uuid
from django.core.exceptions import ValidationError
from django.db import models

from apps.core.redaction import sanitize


class AuditEntry(models.Model):
    """
    Durable record of a mutation to a clinical request, draft or review lock.

    BUSINESS RULE: No PHI in the trail. previous_state, new_state and
    metadata must already be sanitized (a fixed point of sanitize()).

    Fields:
    - id: UUID PK
    - request_id: intake the mutation belongs to (nullable for system events)
    - actor_id: identity of the acting user
    - action_type: e.g. status_change, intake_declined, draft_approved
    - previous_state / new_state / metadata: sanitized JSON
    - created_at: timestamp of the mutation
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request_id = models.UUIDField(
        blank=True,
        null=True,
        db_index=True,
        help_text='Intake the mutation belongs to'
    )
    actor_id = models.CharField(max_length=64, help_text='Identity of the acting user')
    action_type = models.CharField(max_length=64)
    previous_state = models.JSONField(default=dict, blank=True)
    new_state = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_entries'
        verbose_name = 'Audit Entry'
        verbose_name_plural = 'Audit Entries'
        indexes = [
            models.Index(fields=['created_at'], name='idx_audit_entry_created_at'),
            models.Index(fields=['actor_id'], name='idx_audit_entry_actor'),
            models.Index(fields=['action_type'], name='idx_audit_entry_action'),
        ]
        ordering = ['created_at']

    def __str__(self):
        target = str(self.request_id)[:8] if self.request_id else 'system'
        return f"{self.action_type} on {target} by {self.actor_id}"

    def save(self, *args, **kwargs):
        """
        SECURITY: Entries are immutable and must carry sanitized payloads only.
        """
        if not self._state.adding:
            raise ValidationError('Audit entries are append-only and cannot be modified.')

        for field in ('previous_state', 'new_state', 'metadata'):
            value = getattr(self, field)
            if sanitize(value) != value:
                raise ValidationError({field: 'Audit payload must be sanitized before it is stored.'})

        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Audit entries are append-only and cannot be deleted.')
