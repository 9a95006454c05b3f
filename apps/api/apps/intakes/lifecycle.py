"""
Intake lifecycle state machine.

All status and payment-status changes go through RequestLifecycle. Each
operation:

1. loads the intake,
2. validates the edge against Intake.get_valid_transitions(),
3. runs the clinical policy gates (payment, documentation, safety),
4. writes with an optimistic precondition on the loaded status,
5. records a sanitized audit entry in the same transaction,
6. schedules the patient notification for after commit.

Collaborators (store, audit writer, notifier) are constructor arguments so
tests and other entry points can substitute them.
"""
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.audit.services import AuditTrailWriter
from apps.core.observability import metrics, get_sanitized_logger
from apps.core.observability.events import (
    log_gate_blocked,
    log_intake_transition,
    log_refund_duplicate,
)
from apps.core.observability.tracing import trace_span

from .exceptions import (
    Conflict,
    DeclineReasonRequired,
    InsufficientDocumentation,
    InvalidDeclineReason,
    InvalidTransition,
    PaymentRequired,
    SafetyAcknowledgmentRequired,
)
from .models import (
    DeclineReasonChoices,
    Intake,
    IntakeStatusChoices,
    PaymentStatusChoices,
)
from .notifications import StatusNotifier
from .store import DjangoRequestStore

logger = get_sanitized_logger(__name__)

DEFAULT_MIN_CLINICAL_NOTES_LENGTH = 20

# Outcomes a clinician decides; all require a paid intake
CLINICAL_OUTCOMES = frozenset({
    IntakeStatusChoices.IN_REVIEW,
    IntakeStatusChoices.PENDING_INFO,
    IntakeStatusChoices.APPROVED,
    IntakeStatusChoices.DECLINED,
    IntakeStatusChoices.AWAITING_SCRIPT,
})

# Outcomes that release a document or script to the patient
GATED_OUTCOMES = frozenset({
    IntakeStatusChoices.APPROVED,
    IntakeStatusChoices.AWAITING_SCRIPT,
})

TIMESTAMP_FIELDS = {
    IntakeStatusChoices.PAID: 'paid_at',
    IntakeStatusChoices.APPROVED: 'approved_at',
    IntakeStatusChoices.DECLINED: 'declined_at',
    IntakeStatusChoices.CANCELLED: 'cancelled_at',
    IntakeStatusChoices.COMPLETED: 'completed_at',
}


@dataclass
class RefundResult:
    """success=False with already_refunded=True is the duplicate-refund signal."""
    success: bool
    already_refunded: bool = False
    intake: Optional[Intake] = None


def get_min_clinical_notes_length():
    return getattr(settings, 'INTAKE_MIN_CLINICAL_NOTES_LENGTH', DEFAULT_MIN_CLINICAL_NOTES_LENGTH)


def _snapshot(intake):
    # clinical_notes reaches the trail as a redaction marker
    return {
        'status': intake.status,
        'payment_status': intake.payment_status,
        'clinical_notes': intake.clinical_notes,
    }


class RequestLifecycle:
    """Validates and applies intake status changes."""

    def __init__(self, store=None, audit=None, notifier=None):
        self.store = store or DjangoRequestStore()
        self.audit = audit or AuditTrailWriter()
        self.notifier = notifier or StatusNotifier()

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    @metrics.track_duration(metrics.intake_transition_duration_seconds)
    def transition(self, request_id, target_status, actor_id, *, acknowledge_safety=False,
                   expected_status=None):
        """
        Move an intake to target_status.

        Args:
            request_id: Intake UUID
            target_status: IntakeStatusChoices value
            actor_id: Identity of the acting clinician
            acknowledge_safety: Caller has reviewed the intake's safety flags
            expected_status: Status the caller last saw; mismatch raises Conflict

        Returns:
            The updated Intake

        Raises:
            InvalidTransition, PaymentRequired, InsufficientDocumentation,
            SafetyAcknowledgmentRequired, DeclineReasonRequired (declines go
            through decline()), Conflict, Intake.DoesNotExist
        """
        with trace_span('intake.transition', attributes={
            'intake_id': str(request_id),
            'to_status': str(target_status),
        }):
            with transaction.atomic():
                intake = self.store.load_request(request_id)
                self._check_expected(intake, expected_status, target_status, actor_id)
                patch = self._validate(intake, target_status, actor_id, acknowledge_safety)
                return self._apply(
                    intake, target_status, actor_id, patch,
                    action_type='status_change',
                    metadata={'safety_acknowledged': bool(acknowledge_safety)},
                )

    def decline(self, request_id, reason_code, reason_note, actor_id):
        """
        Decline an intake with a taxonomy code and a patient-facing note.

        The code is stored verbatim in the audit trail, the note is redacted.
        """
        if reason_code not in DeclineReasonChoices.values:
            raise InvalidDeclineReason(
                f'Unknown decline reason: {reason_code}',
                reason_code=reason_code,
            )
        if not (reason_note or '').strip():
            raise DeclineReasonRequired()

        with transaction.atomic():
            intake = self.store.load_request(request_id)
            patch = self._validate(
                intake, IntakeStatusChoices.DECLINED, actor_id, False, reason_code=reason_code
            )
            patch.update({
                'decline_reason_code': reason_code,
                'decline_reason_note': reason_note.strip(),
            })
            return self._apply(
                intake, IntakeStatusChoices.DECLINED, actor_id, patch,
                action_type='intake_declined',
                metadata={
                    'decline_reason_code': reason_code,
                    'decline_reason_note': reason_note.strip(),
                },
            )

    def cancel(self, request_id, actor_id):
        """Cancel an intake that has not been paid for yet."""
        with transaction.atomic():
            intake = self.store.load_request(request_id)
            patch = self._validate(intake, IntakeStatusChoices.CANCELLED, actor_id, False)
            return self._apply(
                intake, IntakeStatusChoices.CANCELLED, actor_id, patch,
                action_type='intake_cancelled',
            )

    # ------------------------------------------------------------------
    # Payment status
    # ------------------------------------------------------------------

    def mark_refunded(self, request_id, actor_id, reason=None):
        """
        Mark a paid intake as refunded. Idempotent.

        The clinical status is left untouched. A repeat call returns
        RefundResult(success=False, already_refunded=True) and writes no
        second audit entry.
        """
        with transaction.atomic():
            intake = self.store.load_request(request_id)

            if intake.payment_status == PaymentStatusChoices.REFUNDED:
                return self._duplicate_refund(intake, actor_id)

            if intake.payment_status != PaymentStatusChoices.PAID:
                raise InvalidTransition(
                    f'Only paid intakes can be refunded (payment status: {intake.payment_status}).',
                    payment_status=intake.payment_status,
                )

            now = timezone.now()
            patch = {
                'payment_status': PaymentStatusChoices.REFUNDED,
                'refunded_at': now,
                'refund_reason': reason or '',
            }
            saved = self.store.save_request(
                intake.id, patch, {'payment_status': PaymentStatusChoices.PAID}
            )
            if not saved:
                current = self.store.load_request(request_id)
                if current.payment_status == PaymentStatusChoices.REFUNDED:
                    return self._duplicate_refund(current, actor_id)
                raise Conflict(intake_id=str(intake.id))

            self.audit.append(
                actor_id,
                'payment_refunded',
                previous_state=_snapshot(intake),
                new_state=dict(_snapshot(intake), payment_status=PaymentStatusChoices.REFUNDED),
                metadata={'refunded_at': now, 'refund_reason': reason or ''},
                request_id=intake.id,
            )

        metrics.intake_refunds_total.labels(result='success').inc()
        logger.info(
            'Intake refunded',
            extra={'event': 'intake_refunded', 'intake_id': str(intake.id), 'actor_id': str(actor_id)}
        )
        return RefundResult(success=True, intake=self.store.load_request(request_id))

    def mark_payment_failed(self, request_id, actor_id):
        """Record a failed checkout. The patient may retry; transition to paid accepts failed payments."""
        with transaction.atomic():
            intake = self.store.load_request(request_id)
            if (intake.status != IntakeStatusChoices.PENDING_PAYMENT
                    or intake.payment_status != PaymentStatusChoices.PENDING_PAYMENT):
                raise InvalidTransition(
                    'Only intakes awaiting payment can be marked as failed.',
                    status=intake.status,
                    payment_status=intake.payment_status,
                )

            saved = self.store.save_request(
                intake.id,
                {'payment_status': PaymentStatusChoices.FAILED},
                {'status': intake.status, 'payment_status': intake.payment_status},
            )
            if not saved:
                raise Conflict(intake_id=str(intake.id))

            self.audit.append(
                actor_id,
                'payment_failed',
                previous_state=_snapshot(intake),
                new_state=dict(_snapshot(intake), payment_status=PaymentStatusChoices.FAILED),
                request_id=intake.id,
            )
        return self.store.load_request(request_id)

    # ------------------------------------------------------------------
    # Clinical documentation
    # ------------------------------------------------------------------

    def save_clinical_notes(self, request_id, notes, actor_id):
        """
        Replace the intake's clinical notes.

        Refused once the intake is closed, or once an approval was granted on
        the strength of the current notes.
        """
        with transaction.atomic():
            intake = self.store.load_request(request_id)
            if intake.is_terminal_status or intake.status in GATED_OUTCOMES:
                raise InvalidTransition(
                    f'Clinical notes cannot be changed on a {intake.status} intake.',
                    status=intake.status,
                )

            notes = notes or ''
            saved = self.store.save_request(
                intake.id, {'clinical_notes': notes}, {'status': intake.status}
            )
            if not saved:
                raise Conflict(intake_id=str(intake.id))

            self.audit.append(
                actor_id,
                'clinical_notes_updated',
                previous_state={'clinical_notes': intake.clinical_notes},
                new_state={'clinical_notes': notes},
                metadata={
                    'previous_length': len(intake.clinical_notes),
                    'current_length': len(notes),
                },
                request_id=intake.id,
            )
        return self.store.load_request(request_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_expected(self, intake, expected_status, target_status, actor_id):
        if expected_status and expected_status != intake.status:
            metrics.intake_transitions_total.labels(
                from_status=intake.status, to_status=target_status, result='conflict'
            ).inc()
            log_intake_transition(intake.id, expected_status, target_status, actor_id, result='conflict')
            raise Conflict(
                f'Intake is {intake.status}, expected {expected_status}.',
                current_status=intake.status,
            )

    def _blocked(self, intake, gate, target_status, actor_id, error):
        metrics.intake_policy_gate_blocked_total.labels(gate=gate).inc()
        log_gate_blocked(intake.id, gate, target_status, actor_id)
        raise error

    def _validate(self, intake, target_status, actor_id, acknowledge_safety, reason_code=None):
        """
        Check edge and policy gates, returning the column patch to apply.

        Order: edge, decline reason, payment, documentation, safety.
        Declines only pass with a reason code, so they must come through decline().
        """
        if not intake.can_transition_to(target_status):
            metrics.intake_transitions_total.labels(
                from_status=intake.status, to_status=target_status, result='invalid'
            ).inc()
            valid = [
                s for s in intake.get_valid_transitions().get(intake.status, [])
                if intake.can_transition_to(s)
            ]
            raise InvalidTransition(
                f'Invalid transition from {intake.status} to {target_status}. '
                f'Valid transitions: {", ".join(valid) if valid else "none (terminal state)"}',
                from_status=intake.status,
                to_status=target_status,
            )

        if target_status == IntakeStatusChoices.DECLINED and not reason_code:
            self._blocked(
                intake, DeclineReasonRequired.code, target_status, actor_id,
                DeclineReasonRequired('A decline reason code and note are required.'),
            )

        now = timezone.now()
        patch = {'status': target_status}

        if target_status == IntakeStatusChoices.PAID:
            if intake.payment_status not in (PaymentStatusChoices.PENDING_PAYMENT, PaymentStatusChoices.FAILED):
                raise InvalidTransition(
                    f'Cannot mark as paid with payment status {intake.payment_status}.',
                    payment_status=intake.payment_status,
                )
            patch['payment_status'] = PaymentStatusChoices.PAID

        if target_status in CLINICAL_OUTCOMES:
            if intake.payment_status != PaymentStatusChoices.PAID:
                self._blocked(intake, PaymentRequired.code, target_status, actor_id, PaymentRequired(
                    f'Cannot set status to {target_status} - payment required '
                    f'(current: {intake.payment_status}).',
                    payment_status=intake.payment_status,
                ))
            patch['reviewed_by'] = str(actor_id)
            if intake.reviewed_at is None:
                patch['reviewed_at'] = now

        if target_status in GATED_OUTCOMES:
            notes_length = len((intake.clinical_notes or '').strip())
            min_length = get_min_clinical_notes_length()
            if notes_length < min_length:
                self._blocked(
                    intake, InsufficientDocumentation.code, target_status, actor_id,
                    InsufficientDocumentation(
                        f'Clinical notes must be at least {min_length} characters '
                        f'(currently {notes_length}).',
                        notes_length=notes_length,
                        min_length=min_length,
                    )
                )

            if intake.has_unacknowledged_safety_signal:
                if not acknowledge_safety:
                    self._blocked(
                        intake, SafetyAcknowledgmentRequired.code, target_status, actor_id,
                        SafetyAcknowledgmentRequired(
                            risk_tier=intake.risk_tier,
                            red_flag_count=len(intake.red_flags or []),
                            requires_live_consult=intake.requires_live_consult,
                        )
                    )
                patch['safety_acknowledged_at'] = now
                patch['safety_acknowledged_by'] = str(actor_id)

        timestamp_field = TIMESTAMP_FIELDS.get(target_status)
        if timestamp_field:
            patch[timestamp_field] = now

        return patch

    def _apply(self, intake, target_status, actor_id, patch, action_type, metadata=None):
        from_status = intake.status

        if not self.store.save_request(intake.id, patch, {'status': from_status}):
            metrics.intake_transitions_total.labels(
                from_status=from_status, to_status=target_status, result='conflict'
            ).inc()
            log_intake_transition(intake.id, from_status, target_status, actor_id, result='conflict')
            raise Conflict(intake_id=str(intake.id))

        new_state = dict(_snapshot(intake), **patch)

        self.audit.append(
            actor_id,
            action_type,
            previous_state=_snapshot(intake),
            new_state=new_state,
            metadata=dict(metadata or {}, from_status=from_status, to_status=target_status),
            request_id=intake.id,
        )
        self.notifier.notify_status_changed(intake, from_status, target_status, actor_id)

        metrics.intake_transitions_total.labels(
            from_status=from_status, to_status=target_status, result='success'
        ).inc()
        log_intake_transition(intake.id, from_status, target_status, actor_id)

        return self.store.load_request(intake.id)

    def _duplicate_refund(self, intake, actor_id):
        metrics.intake_refunds_total.labels(result='duplicate').inc()
        log_refund_duplicate(intake.id, actor_id)
        return RefundResult(success=False, already_refunded=True, intake=intake)
