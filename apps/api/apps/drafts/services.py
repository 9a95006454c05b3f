"""
Draft review services.

A draft is only trustworthy while the answers it was generated from are
unchanged. Staleness is detected by comparing fingerprints of the answers,
never by interpreting them, and by the draft's age.

Approval and rejection are final: the draft row becomes immutable and the
decision is recorded in the audit trail with content lengths only.
"""
import hashlib
import json
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.audit.services import AuditTrailWriter
from apps.core.observability import metrics, get_sanitized_logger
from apps.core.observability.events import log_draft_decision
from apps.intakes.exceptions import (
    DraftAlreadyFinalized,
    DraftNotReady,
    RejectionReasonRequired,
    StalenessAcknowledgmentRequired,
)

from .diff import format_content_for_diff
from .models import Draft, DraftStatusChoices

logger = get_sanitized_logger(__name__)

DEFAULT_MAX_AGE_HOURS = 24
MIN_REJECTION_REASON_LENGTH = 5

ANSWERS_CHANGED = 'Source answers changed after the draft was generated.'
ANSWERS_UNVERIFIED = 'Current answers were not supplied, so staleness cannot be verified.'


@dataclass
class StalenessResult:
    is_stale: bool
    reason: Optional[str] = None


def fingerprint_answers(answers):
    """SHA-256 of the answers as canonical JSON (sorted keys)."""
    canonical = json.dumps(answers, sort_keys=True, separators=(',', ':'), default=str)
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


def get_max_age():
    return timedelta(hours=getattr(settings, 'DRAFT_MAX_AGE_HOURS', DEFAULT_MAX_AGE_HOURS))


def evaluate_staleness(draft, current_answers_fingerprint=None, now=None):
    """
    Staleness of an already-loaded draft.

    A draft is stale when the caller's fingerprint differs from the one the
    draft was generated from, or when it is older than DRAFT_MAX_AGE_HOURS.
    """
    if (current_answers_fingerprint is not None
            and current_answers_fingerprint != draft.source_answers_fingerprint):
        return StalenessResult(is_stale=True, reason=ANSWERS_CHANGED)

    max_age = get_max_age()
    if draft.created_at and (now or timezone.now()) - draft.created_at > max_age:
        hours = int(max_age.total_seconds() // 3600)
        return StalenessResult(is_stale=True, reason=f'Draft is older than {hours} hours.')

    return StalenessResult(is_stale=False)


def check_staleness(draft_id, current_answers_fingerprint):
    """Load a draft and report whether it is stale. Draft.DoesNotExist propagates."""
    draft = Draft.objects.get(pk=draft_id)
    return evaluate_staleness(draft, current_answers_fingerprint)


class DraftReviewService:
    """Approve, reject and version drafts, with audit."""

    def __init__(self, audit=None):
        self.audit = audit or AuditTrailWriter()

    def approve(self, draft_id, actor_id, *, edited_content=None, current_answers_fingerprint=None,
                acknowledge_staleness=False):
        """
        Approve a ready draft, optionally with the clinician's edits.

        A missing current_answers_fingerprint is treated as stale, so it needs
        acknowledge_staleness like any other stale draft.

        Raises:
            DraftAlreadyFinalized, DraftNotReady, StalenessAcknowledgmentRequired,
            Draft.DoesNotExist
        """
        with transaction.atomic():
            draft = Draft.objects.select_for_update().get(pk=draft_id)

            if draft.is_finalized:
                raise DraftAlreadyFinalized(draft_id=str(draft.id))
            if draft.status != DraftStatusChoices.READY:
                raise DraftNotReady(
                    f'Draft is {draft.status}, only ready drafts can be approved.',
                    status=draft.status,
                )

            # Without the current answers the draft cannot be shown to be fresh
            if current_answers_fingerprint is None:
                staleness = StalenessResult(is_stale=True, reason=ANSWERS_UNVERIFIED)
            else:
                staleness = evaluate_staleness(draft, current_answers_fingerprint)
            if staleness.is_stale and not acknowledge_staleness:
                raise StalenessAcknowledgmentRequired(
                    f'{staleness.reason} Acknowledge staleness to approve anyway.',
                    reason=staleness.reason,
                )

            if edited_content is not None:
                draft.edited_content = edited_content

            original_text = format_content_for_diff(draft.content)
            final_text = format_content_for_diff(
                draft.edited_content if draft.edited_content is not None else draft.content
            )

            draft.approved_at = timezone.now()
            draft.approved_by = str(actor_id)
            draft.save()

            self.audit.append(
                actor_id,
                'draft_approved',
                previous_state={'status': draft.status, 'approved_at': None},
                new_state={'status': draft.status, 'approved_at': draft.approved_at},
                metadata={
                    'draft_id': draft.id,
                    'draft_type': draft.type,
                    'version': draft.version,
                    'has_edits': original_text != final_text,
                    'original_length': len(original_text),
                    'edited_length': len(final_text),
                    'is_stale': staleness.is_stale,
                    'staleness_acknowledged': bool(staleness.is_stale and acknowledge_staleness),
                },
                request_id=draft.intake_id,
            )

        metrics.draft_decisions_total.labels(type=draft.type, decision='approved').inc()
        log_draft_decision(draft, 'approved', actor_id, is_stale=staleness.is_stale)
        return draft

    def reject(self, draft_id, actor_id, reason):
        """
        Reject a draft. The reason must be at least 5 characters.

        Raises:
            DraftAlreadyFinalized, RejectionReasonRequired, Draft.DoesNotExist
        """
        reason = (reason or '').strip()

        with transaction.atomic():
            draft = Draft.objects.select_for_update().get(pk=draft_id)

            if draft.is_finalized:
                raise DraftAlreadyFinalized(draft_id=str(draft.id))
            if len(reason) < MIN_REJECTION_REASON_LENGTH:
                raise RejectionReasonRequired(min_length=MIN_REJECTION_REASON_LENGTH)

            draft.rejected_at = timezone.now()
            draft.rejected_by = str(actor_id)
            draft.rejection_reason = reason
            draft.save()

            self.audit.append(
                actor_id,
                'draft_rejected',
                previous_state={'status': draft.status, 'rejected_at': None},
                new_state={'status': draft.status, 'rejected_at': draft.rejected_at},
                metadata={
                    'draft_id': draft.id,
                    'draft_type': draft.type,
                    'version': draft.version,
                    'rejection_reason': reason,
                },
                request_id=draft.intake_id,
            )

        metrics.draft_decisions_total.labels(type=draft.type, decision='rejected').inc()
        log_draft_decision(draft, 'rejected', actor_id)
        return draft

    def create_draft_version(self, intake, type, content, source_answers_fingerprint, model='',
                             status=DraftStatusChoices.READY, actor_id='system'):
        """
        Store a newly generated draft as the next version for (intake, type).

        Earlier versions are kept untouched.
        """
        for attempt in range(3):
            try:
                with transaction.atomic():
                    latest = (
                        Draft.objects.select_for_update()
                        .filter(intake=intake, type=type)
                        .order_by('-version')
                        .first()
                    )
                    draft = Draft.objects.create(
                        intake=intake,
                        type=type,
                        content=content,
                        status=status,
                        model=model,
                        version=(latest.version + 1) if latest else 1,
                        source_answers_fingerprint=source_answers_fingerprint,
                    )
                    self.audit.append(
                        actor_id,
                        'draft_created',
                        new_state={'status': draft.status, 'version': draft.version},
                        metadata={'draft_id': draft.id, 'draft_type': draft.type, 'model': model},
                        request_id=intake.id,
                    )
                    return draft
            except IntegrityError:
                # Concurrent generation took this version number
                if attempt == 2:
                    raise
                logger.warning(
                    'Draft version collision, retrying',
                    extra={'event': 'draft_version_collision', 'intake_id': str(intake.id)}
                )


_default_service = DraftReviewService()


def approve(draft_id, actor_id, *, edited_content=None, current_answers_fingerprint=None,
            acknowledge_staleness=False):
    return _default_service.approve(
        draft_id,
        actor_id,
        edited_content=edited_content,
        current_answers_fingerprint=current_answers_fingerprint,
        acknowledge_staleness=acknowledge_staleness,
    )


def reject(draft_id, actor_id, reason):
    return _default_service.reject(draft_id, actor_id, reason)


def create_draft_version(intake, type, content, source_answers_fingerprint, model=''):
    return _default_service.create_draft_version(intake, type, content, source_answers_fingerprint, model=model)
