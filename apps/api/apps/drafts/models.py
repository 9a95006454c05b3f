"""Draft models - AI-generated clinical documents awaiting clinician review."""
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _
from django.core.exceptions import ValidationError


class DraftTypeChoices(models.TextChoices):
    CLINICAL_NOTE = 'clinical_note', _('Clinical note')
    MED_CERT = 'med_cert', _('Medical certificate')


class DraftStatusChoices(models.TextChoices):
    PENDING = 'pending', _('Pending generation')
    READY = 'ready', _('Ready for review')
    FAILED = 'failed', _('Generation failed')


class Draft(models.Model):
    """
    Versioned document draft generated from an intake's answers.

    Business Rules:
    - at most one of approved_at / rejected_at is set
    - once approved or rejected the draft is immutable
    - regeneration creates a new version, drafts are never overwritten or deleted
    - source_answers_fingerprint records which answers the draft was built from
    """
    intake = models.ForeignKey(
        'intakes.Intake',
        on_delete=models.PROTECT,
        related_name='drafts',
    )
    type = models.CharField(max_length=32, choices=DraftTypeChoices.choices)
    content = models.JSONField(default=dict, blank=True)
    edited_content = models.JSONField(
        null=True,
        blank=True,
        help_text=_('Clinician edits, kept separately from the generated content')
    )
    status = models.CharField(
        max_length=16,
        choices=DraftStatusChoices.choices,
        default=DraftStatusChoices.PENDING,
    )
    model = models.CharField(max_length=128, blank=True, default='', help_text=_('Generator model name'))
    version = models.PositiveIntegerField(default=1)
    source_answers_fingerprint = models.CharField(max_length=64, blank=True, default='')

    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.CharField(max_length=64, blank=True, default='')
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.CharField(max_length=64, blank=True, default='')
    rejection_reason = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'document_drafts'
        verbose_name = _('Draft')
        verbose_name_plural = _('Drafts')
        ordering = ['intake', 'type', '-version']
        constraints = [
            models.UniqueConstraint(
                fields=['intake', 'type', 'version'],
                name='uniq_draft_intake_type_version'
            ),
            models.CheckConstraint(
                condition=Q(approved_at__isnull=True) | Q(rejected_at__isnull=True),
                name='draft_not_both_approved_and_rejected'
            ),
        ]

    def __str__(self):
        return f"{self.get_type_display()} v{self.version} for intake {str(self.intake_id)[:8]}"

    @property
    def is_finalized(self):
        return self.approved_at is not None or self.rejected_at is not None

    def clean(self):
        super().clean()
        # INVARIANT: approval and rejection are mutually exclusive
        if self.approved_at and self.rejected_at:
            raise ValidationError('A draft cannot be both approved and rejected.')

    def save(self, *args, **kwargs):
        """
        Override save to enforce full_clean() and immutability of finalized drafts.

        SECURITY: Prevents admin bypass of business rules.
        """
        if not self._state.adding:
            stored = Draft.objects.filter(pk=self.pk).values('approved_at', 'rejected_at').first()
            if stored and (stored['approved_at'] or stored['rejected_at']):
                raise ValidationError('Approved or rejected drafts cannot be modified.')
        if not kwargs.pop('skip_validation', False):
            self.full_clean()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Drafts are retained for the clinical record and cannot be deleted.')
