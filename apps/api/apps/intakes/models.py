"""Intake models - patient requests moving through clinical review."""
from django.db import models
from django.utils.translation import gettext_lazy as _
from django.core.exceptions import ValidationError
import uuid


class IntakeCategoryChoices(models.TextChoices):
    MEDICAL_CERTIFICATE = 'medical_certificate', _('Medical certificate')
    PRESCRIPTION = 'prescription', _('Prescription')
    CONSULT = 'consult', _('Consult')


class IntakeStatusChoices(models.TextChoices):
    """
    Intake status choices with state machine.

    Transitions:
    - draft -> pending_payment, cancelled
    - pending_payment -> paid, cancelled
    - paid -> in_review, pending_info, approved, declined, awaiting_script
    - in_review -> approved, declined, pending_info, awaiting_script
    - pending_info -> in_review, approved, declined, awaiting_script
    - approved -> completed
    - awaiting_script -> completed (prescriptions only)
    - declined, completed, cancelled -> (terminal)
    """
    DRAFT = 'draft', _('Draft')
    PENDING_PAYMENT = 'pending_payment', _('Pending payment')
    PAID = 'paid', _('Paid')
    IN_REVIEW = 'in_review', _('In review')
    PENDING_INFO = 'pending_info', _('Pending info')
    APPROVED = 'approved', _('Approved')
    DECLINED = 'declined', _('Declined')
    AWAITING_SCRIPT = 'awaiting_script', _('Awaiting script')
    COMPLETED = 'completed', _('Completed')
    CANCELLED = 'cancelled', _('Cancelled')


class PaymentStatusChoices(models.TextChoices):
    """
    Payment status, tracked separately from the clinical status.

    Transitions:
    - pending_payment -> paid, failed
    - failed -> paid (retry)
    - paid -> refunded (terminal)
    """
    PENDING_PAYMENT = 'pending_payment', _('Pending payment')
    PAID = 'paid', _('Paid')
    FAILED = 'failed', _('Failed')
    REFUNDED = 'refunded', _('Refunded')


class RiskTierChoices(models.TextChoices):
    LOW = 'low', _('Low')
    MEDIUM = 'medium', _('Medium')
    HIGH = 'high', _('High')


class DeclineReasonChoices(models.TextChoices):
    REQUIRES_EXAMINATION = 'requires_examination', _('Requires in-person examination')
    NOT_TELEHEALTH_SUITABLE = 'not_telehealth_suitable', _('Not suitable for telehealth')
    PRESCRIBING_GUIDELINES = 'prescribing_guidelines', _('Outside prescribing guidelines')
    CONTROLLED_SUBSTANCE = 'controlled_substance', _('Controlled substance')
    URGENT_CARE_NEEDED = 'urgent_care_needed', _('Urgent care needed')
    INSUFFICIENT_INFO = 'insufficient_info', _('Insufficient information')
    PATIENT_NOT_ELIGIBLE = 'patient_not_eligible', _('Patient not eligible')
    OUTSIDE_SCOPE = 'outside_scope', _('Outside scope of service')
    OTHER = 'other', _('Other')


# Patient-facing pre-fill for the decline note, keyed by reason code
DECLINE_REASON_TEMPLATES = {
    DeclineReasonChoices.REQUIRES_EXAMINATION: (
        'This condition requires a physical examination that cannot be conducted via telehealth. '
        'Please see your regular doctor or visit a clinic for an in-person assessment.'
    ),
    DeclineReasonChoices.NOT_TELEHEALTH_SUITABLE: (
        'Based on the information provided, this request is not suitable for an asynchronous '
        'telehealth consultation. Please book a video/phone consultation or see your regular doctor.'
    ),
    DeclineReasonChoices.PRESCRIBING_GUIDELINES: (
        'This request cannot be fulfilled as it does not align with current prescribing guidelines. '
        'Please discuss with your regular doctor who has access to your full medical history.'
    ),
    DeclineReasonChoices.CONTROLLED_SUBSTANCE: (
        'This medication is a controlled substance and cannot be prescribed via this telehealth '
        'service. Please see your regular doctor who can assess you in person.'
    ),
    DeclineReasonChoices.URGENT_CARE_NEEDED: (
        'Based on your symptoms, you may need more urgent assessment. Please visit your nearest '
        'emergency department or call 000 if experiencing a medical emergency.'
    ),
    DeclineReasonChoices.INSUFFICIENT_INFO: (
        'We need more information to safely assess your request. Please provide additional details '
        'about your condition and medical history, or see your regular doctor.'
    ),
    DeclineReasonChoices.PATIENT_NOT_ELIGIBLE: (
        'Based on the eligibility criteria, we are unable to process this request. '
        'Please see your regular doctor for assistance.'
    ),
    DeclineReasonChoices.OUTSIDE_SCOPE: (
        'This request falls outside the scope of what can be safely managed via telehealth. '
        'Please consult with your regular doctor or an appropriate specialist.'
    ),
    DeclineReasonChoices.OTHER: '',
}


def get_decline_template(code):
    """Return the pre-fill text for a decline reason code ('' for unknown codes)."""
    return DECLINE_REASON_TEMPLATES.get(code, '')


class Intake(models.Model):
    """
    A patient's clinical request.

    Business Rules:
    - status only changes through apps.intakes.lifecycle.RequestLifecycle
    - payment_status is never collapsed into status
    - intakes are never deleted
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reference_number = models.CharField(
        max_length=32,
        unique=True,
        null=True,
        blank=True,
        help_text=_('Human readable reference shown to patients and support')
    )
    category = models.CharField(
        max_length=32,
        choices=IntakeCategoryChoices.choices,
    )
    status = models.CharField(
        max_length=32,
        choices=IntakeStatusChoices.choices,
        default=IntakeStatusChoices.DRAFT,
        db_index=True,
    )
    payment_status = models.CharField(
        max_length=32,
        choices=PaymentStatusChoices.choices,
        default=PaymentStatusChoices.PENDING_PAYMENT,
    )

    # Safety signals
    risk_tier = models.CharField(
        max_length=16,
        choices=RiskTierChoices.choices,
        default=RiskTierChoices.LOW,
    )
    requires_live_consult = models.BooleanField(default=False)
    red_flags = models.JSONField(
        default=list,
        blank=True,
        help_text=_('Emergency symptom markers raised by the questionnaire')
    )
    safety_acknowledged_at = models.DateTimeField(null=True, blank=True)
    safety_acknowledged_by = models.CharField(max_length=64, blank=True, default='')

    # Clinical documentation
    clinical_notes = models.TextField(blank=True, default='')
    decline_reason_code = models.CharField(
        max_length=32,
        choices=DeclineReasonChoices.choices,
        blank=True,
        default='',
    )
    decline_reason_note = models.TextField(blank=True, default='')
    refund_reason = models.TextField(blank=True, default='')

    # Timestamps
    paid_at = models.DateTimeField(null=True, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.CharField(max_length=64, blank=True, default='')
    approved_at = models.DateTimeField(null=True, blank=True)
    declined_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'intakes'
        verbose_name = _('Intake')
        verbose_name_plural = _('Intakes')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='idx_intake_status_created'),
            models.Index(fields=['payment_status'], name='idx_intake_payment_status'),
        ]

    def __str__(self):
        ref = self.reference_number or str(self.id)[:8]
        return f"Intake {ref} - {self.get_status_display()}"

    def save(self, *args, **kwargs):
        """
        Override save to enforce full_clean() validation.

        SECURITY: Prevents admin bypass of business rules.
        """
        if not kwargs.pop('skip_validation', False):
            self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Intakes are retained for the clinical record and cannot be deleted.')

    @property
    def is_terminal_status(self):
        return self.status in self.terminal_statuses()

    @property
    def has_safety_signal(self):
        """High risk tier, emergency red flags or a live-consult requirement."""
        return (
            self.risk_tier == RiskTierChoices.HIGH
            or bool(self.red_flags)
            or self.requires_live_consult
        )

    @property
    def has_unacknowledged_safety_signal(self):
        return self.has_safety_signal and self.safety_acknowledged_at is None

    @classmethod
    def terminal_statuses(cls):
        return [
            IntakeStatusChoices.DECLINED,
            IntakeStatusChoices.COMPLETED,
            IntakeStatusChoices.CANCELLED,
        ]

    @classmethod
    def get_valid_transitions(cls):
        """
        Get valid status transitions.

        Returns dict: {current_status: [allowed_next_statuses]}
        """
        return {
            IntakeStatusChoices.DRAFT: [
                IntakeStatusChoices.PENDING_PAYMENT,
                IntakeStatusChoices.CANCELLED,
            ],
            IntakeStatusChoices.PENDING_PAYMENT: [
                IntakeStatusChoices.PAID,
                IntakeStatusChoices.CANCELLED,
            ],
            IntakeStatusChoices.PAID: [
                IntakeStatusChoices.IN_REVIEW,
                IntakeStatusChoices.PENDING_INFO,
                IntakeStatusChoices.APPROVED,
                IntakeStatusChoices.DECLINED,
                IntakeStatusChoices.AWAITING_SCRIPT,
            ],
            IntakeStatusChoices.IN_REVIEW: [
                IntakeStatusChoices.APPROVED,
                IntakeStatusChoices.DECLINED,
                IntakeStatusChoices.PENDING_INFO,
                IntakeStatusChoices.AWAITING_SCRIPT,
            ],
            IntakeStatusChoices.PENDING_INFO: [
                IntakeStatusChoices.IN_REVIEW,
                IntakeStatusChoices.APPROVED,
                IntakeStatusChoices.DECLINED,
                IntakeStatusChoices.AWAITING_SCRIPT,
            ],
            IntakeStatusChoices.APPROVED: [IntakeStatusChoices.COMPLETED],
            IntakeStatusChoices.AWAITING_SCRIPT: [IntakeStatusChoices.COMPLETED],
            IntakeStatusChoices.DECLINED: [],   # Terminal
            IntakeStatusChoices.COMPLETED: [],  # Terminal
            IntakeStatusChoices.CANCELLED: [],  # Terminal
        }

    def can_transition_to(self, new_status):
        """Check if the edge current -> new_status exists for this intake's category."""
        if (new_status == IntakeStatusChoices.AWAITING_SCRIPT
                and self.category != IntakeCategoryChoices.PRESCRIPTION):
            return False
        return new_status in self.get_valid_transitions().get(self.status, [])
