"""Intake serializers."""
from rest_framework import serializers

from apps.review_locks.models import ReviewLock

from .models import DeclineReasonChoices, Intake, IntakeStatusChoices, get_decline_template


class IntakeSerializer(serializers.ModelSerializer):
    """Read-only intake representation for the clinician review queue."""
    has_safety_signal = serializers.BooleanField(read_only=True)
    has_unacknowledged_safety_signal = serializers.BooleanField(read_only=True)

    class Meta:
        model = Intake
        fields = [
            'id', 'reference_number', 'category', 'status', 'payment_status',
            'risk_tier', 'requires_live_consult', 'red_flags',
            'has_safety_signal', 'has_unacknowledged_safety_signal',
            'safety_acknowledged_at', 'safety_acknowledged_by',
            'clinical_notes', 'decline_reason_code', 'decline_reason_note',
            'paid_at', 'reviewed_at', 'reviewed_by', 'approved_at', 'declined_at',
            'cancelled_at', 'completed_at', 'refunded_at', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class IntakeTransitionSerializer(serializers.Serializer):
    """
    POST /intakes/{id}/transition/
    {
        "new_status": "approved",
        "acknowledge_safety": true,       // optional
        "expected_status": "in_review"    // optional, last status the client saw
    }
    """
    # Declines carry a reason and go through /decline/
    new_status = serializers.ChoiceField(choices=[
        (value, label) for value, label in IntakeStatusChoices.choices
        if value != IntakeStatusChoices.DECLINED
    ])
    acknowledge_safety = serializers.BooleanField(required=False, default=False)
    expected_status = serializers.ChoiceField(
        choices=IntakeStatusChoices.choices,
        required=False,
        allow_null=True,
    )


class IntakeDeclineSerializer(serializers.Serializer):
    # Code and note are validated by the lifecycle so errors carry domain codes
    reason_code = serializers.CharField()
    reason_note = serializers.CharField(required=False, allow_blank=True, default='')


class IntakeRefundSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ClinicalNotesSerializer(serializers.Serializer):
    clinical_notes = serializers.CharField(allow_blank=True, trim_whitespace=False)


class DeclineReasonSerializer(serializers.Serializer):
    code = serializers.CharField()
    label = serializers.CharField()
    template = serializers.CharField(allow_blank=True)

    @staticmethod
    def reasons():
        return [
            {'code': code, 'label': str(label), 'template': get_decline_template(code)}
            for code, label in DeclineReasonChoices.choices
        ]


class ReviewLockSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReviewLock
        fields = ['request_id', 'holder_id', 'acquired_at', 'expires_at']
        read_only_fields = fields


class LockRequestSerializer(serializers.Serializer):
    ttl_seconds = serializers.IntegerField(required=False, min_value=1, max_value=3600)
