"""
Persistence for intakes, used by the lifecycle state machine.

save_request() is a conditional UPDATE: it only writes when the row still
matches the expected column values, which gives optimistic concurrency
without holding row locks across a clinician's review.
"""
from django.utils import timezone

from .models import Intake


class DjangoRequestStore:

    def load_request(self, request_id):
        """Load an intake. Intake.DoesNotExist propagates."""
        return Intake.objects.get(pk=request_id)

    def save_request(self, request_id, patch, expected):
        """
        Apply patch where the row still matches expected.

        Returns True when exactly one row was written, False when another
        writer got there first.
        """
        patch = dict(patch, updated_at=timezone.now())
        updated = Intake.objects.filter(pk=request_id, **expected).update(**patch)
        return updated == 1
