"""
Domain errors raised by the lifecycle state machine and the draft engine.

Each error carries a machine-readable code and, for policy gates, a remedy
telling the caller what to do before retrying. Views translate them into
400/409 responses.
"""


class CoordinatorError(Exception):
    """Base class for clinical request coordinator errors."""
    code = 'coordinator_error'
    remedy = None
    default_message = 'The request could not be processed.'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def as_dict(self):
        data = {
            'error': self.message,
            'error_type': self.code,
        }
        if self.remedy:
            data['remedy'] = self.remedy
        return data


class InvalidTransition(CoordinatorError):
    """Edge not in the transition table (or not allowed for this category)."""
    code = 'invalid_transition'
    default_message = 'This status change is not allowed.'


class PaymentRequired(CoordinatorError):
    """Clinical outcome requested before the intake is paid."""
    code = 'payment_required'
    default_message = 'The intake must be paid before a clinical decision can be made.'


class Conflict(CoordinatorError):
    """Another writer changed the intake between load and save."""
    code = 'conflict'
    default_message = 'The intake was changed by someone else. Reload and try again.'


class InsufficientDocumentation(CoordinatorError):
    code = 'insufficient_documentation'
    remedy = 'add_clinical_notes'
    default_message = 'Clinical notes are required before this decision.'


class SafetyAcknowledgmentRequired(CoordinatorError):
    code = 'safety_acknowledgment_required'
    remedy = 'acknowledge_safety_flags'
    default_message = 'This intake has safety flags that must be acknowledged first.'


class StalenessAcknowledgmentRequired(CoordinatorError):
    code = 'staleness_acknowledgment_required'
    remedy = 'acknowledge_staleness'
    default_message = 'The draft is stale and must be acknowledged before approval.'


class InvalidDeclineReason(CoordinatorError):
    code = 'invalid_decline_reason'
    default_message = 'Unknown decline reason code.'


class DeclineReasonRequired(CoordinatorError):
    code = 'decline_reason_required'
    default_message = 'A decline note is required.'


class DraftAlreadyFinalized(CoordinatorError):
    code = 'draft_already_finalized'
    default_message = 'This draft has already been approved or rejected.'


class DraftNotReady(CoordinatorError):
    code = 'draft_not_ready'
    default_message = 'This draft is not ready for review.'


class RejectionReasonRequired(CoordinatorError):
    code = 'rejection_reason_required'
    default_message = 'A rejection reason of at least 5 characters is required.'
