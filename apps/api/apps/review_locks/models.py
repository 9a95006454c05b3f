"""Review lock models - advisory 'someone else is looking at this' markers."""
from django.db import models
from django.utils import timezone


class ReviewLock(models.Model):
    """
    Advisory lock on an intake under review.

    BUSINESS RULE: Locks never block a clinician. They only produce a warning
    for a second reviewer. Expiry is lazy: a row whose expires_at has passed is
    treated as absent and is replaced by the next acquire().

    Fields:
    - request_id: intake under review (PK, at most one lock per intake)
    - holder_id: clinician who holds the lock
    - acquired_at: when the current holder first acquired it
    - expires_at: end of the current TTL window
    """
    request_id = models.UUIDField(primary_key=True)
    holder_id = models.CharField(max_length=64)
    acquired_at = models.DateTimeField()
    expires_at = models.DateTimeField()

    class Meta:
        db_table = 'review_locks'
        verbose_name = 'Review Lock'
        verbose_name_plural = 'Review Locks'
        indexes = [
            models.Index(fields=['expires_at'], name='idx_review_lock_expires'),
        ]

    def __str__(self):
        return f"Lock on {str(self.request_id)[:8]} held by {self.holder_id}"

    def is_live(self, now=None):
        return self.expires_at > (now or timezone.now())
