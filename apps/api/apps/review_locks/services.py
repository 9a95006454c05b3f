"""
Advisory review locks.

BUSINESS RULE: A lock is a courtesy signal, never a gate. acquire() always
returns; when a colleague already holds the intake the caller gets a
warning and may continue reviewing anyway.

Lock rows are read with select_for_update() inside transaction.atomic(), so
two concurrent acquire() calls cannot both install themselves as holder.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.audit.services import AuditTrailWriter
from apps.core.observability import metrics, get_sanitized_logger
from apps.core.observability.events import log_lock_contention

from .models import ReviewLock

logger = get_sanitized_logger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 300


@dataclass
class LockResult:
    """Outcome of acquire(): acquired=False means someone else holds the lock."""
    acquired: bool
    warning: Optional[str] = None
    lock: Optional[ReviewLock] = None


def get_lock_ttl():
    return timedelta(seconds=getattr(settings, 'REVIEW_LOCK_TTL_SECONDS', DEFAULT_LOCK_TTL_SECONDS))


def format_contention_warning(holder_id, held_for):
    minutes = int(held_for.total_seconds() // 60)
    unit = 'minute' if minutes == 1 else 'minutes'
    return f"Another clinician ({holder_id}) has had this request open for {minutes} {unit}."


class ReviewLockManager:
    """
    Acquire / extend / release advisory locks on intakes under review.

    Every lock mutation is recorded in the audit trail
    (lock_acquired, lock_extended, lock_released).
    """

    def __init__(self, audit=None):
        self.audit = audit or AuditTrailWriter()

    def _ttl(self, ttl):
        if ttl is None:
            return get_lock_ttl()
        if isinstance(ttl, timedelta):
            return ttl
        return timedelta(seconds=ttl)

    def _lock_state(self, lock):
        if lock is None:
            return {}
        return {
            'holder_id': lock.holder_id,
            'acquired_at': lock.acquired_at,
            'expires_at': lock.expires_at,
        }

    def get_active_lock(self, request_id):
        """Return the live lock for an intake, or None (expired rows count as absent)."""
        return ReviewLock.objects.filter(
            request_id=request_id,
            expires_at__gt=timezone.now(),
        ).first()

    def acquire(self, request_id, holder_id, ttl=None):
        """
        Register a clinician's interest in an intake.

        - No live lock: install one for holder_id.
        - Live lock held by holder_id: refresh its expiry.
        - Live lock held by someone else: install nothing, return a warning.
        """
        holder_id = str(holder_id)
        ttl = self._ttl(ttl)

        with transaction.atomic():
            now = timezone.now()
            lock = ReviewLock.objects.select_for_update().filter(request_id=request_id).first()

            if lock is None:
                try:
                    with transaction.atomic():
                        lock = ReviewLock.objects.create(
                            request_id=request_id,
                            holder_id=holder_id,
                            acquired_at=now,
                            expires_at=now + ttl,
                        )
                except IntegrityError:
                    # Lost the insert race; evaluate the winner's row instead
                    lock = ReviewLock.objects.select_for_update().get(request_id=request_id)
                else:
                    self._record(request_id, holder_id, 'lock_acquired', None, lock)
                    metrics.review_lock_acquisitions_total.labels(result='acquired').inc()
                    return LockResult(acquired=True, lock=lock)

            if lock.holder_id != holder_id and lock.is_live(now):
                held_for = now - lock.acquired_at
                metrics.review_lock_acquisitions_total.labels(result='contended').inc()
                log_lock_contention(request_id, lock.holder_id, holder_id, int(held_for.total_seconds() // 60))
                return LockResult(
                    acquired=False,
                    warning=format_contention_warning(lock.holder_id, held_for),
                    lock=lock,
                )

            previous = self._lock_state(lock)
            refreshed = lock.holder_id == holder_id and lock.is_live(now)
            if not refreshed:
                lock.holder_id = holder_id
                lock.acquired_at = now
            lock.expires_at = now + ttl
            lock.save(update_fields=['holder_id', 'acquired_at', 'expires_at'])

            self._record(request_id, holder_id, 'lock_acquired', previous, lock, refreshed=refreshed)
            metrics.review_lock_acquisitions_total.labels(
                result='refreshed' if refreshed else 'acquired'
            ).inc()
            return LockResult(acquired=True, lock=lock)

    def extend(self, request_id, holder_id, ttl=None):
        """
        Push the expiry of a live lock held by holder_id.

        Returns False (no-op) when the lock has expired or belongs to someone else.
        """
        holder_id = str(holder_id)
        ttl = self._ttl(ttl)

        with transaction.atomic():
            now = timezone.now()
            lock = ReviewLock.objects.select_for_update().filter(
                request_id=request_id,
                holder_id=holder_id,
                expires_at__gt=now,
            ).first()
            if lock is None:
                return False

            previous = self._lock_state(lock)
            lock.expires_at = now + ttl
            lock.save(update_fields=['expires_at'])
            self._record(request_id, holder_id, 'lock_extended', previous, lock)
            return True

    def release(self, request_id, holder_id):
        """
        Drop a lock held by holder_id.

        Returns False (no-op) when the lock belongs to someone else or is absent.
        """
        holder_id = str(holder_id)

        with transaction.atomic():
            lock = ReviewLock.objects.select_for_update().filter(
                request_id=request_id,
                holder_id=holder_id,
            ).first()
            if lock is None:
                return False

            previous = self._lock_state(lock)
            lock.delete()
            self._record(request_id, holder_id, 'lock_released', previous, None)
            return True

    def _record(self, request_id, holder_id, action_type, previous, lock, **metadata):
        self.audit.append(
            holder_id,
            action_type,
            previous_state=previous or {},
            new_state=self._lock_state(lock),
            metadata=metadata,
            request_id=request_id,
        )
        logger.info(
            f'Review lock: {action_type}',
            extra={
                'event': action_type,
                'intake_id': str(request_id),
                'holder_id': holder_id,
            }
        )
