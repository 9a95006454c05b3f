"""
Intake signals for status change events.
"""
from django.dispatch import Signal

# Signal emitted after an intake's status change has committed.
# Payload (ids and status codes only, NO PHI):
#   - intake_id: UUID of the intake (string)
#   - from_status: previous status
#   - to_status: new status
#   - actor_id: identity of the clinician who made the change
#   - category: intake category
#
# Receivers handle outbound patient communication (email/SMS) and must not
# raise: the lifecycle change has already been committed.
request_status_changed = Signal()
