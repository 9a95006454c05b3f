"""Draft serializers."""
from rest_framework import serializers
from .models import Draft


class DraftSerializer(serializers.ModelSerializer):
    is_finalized = serializers.BooleanField(read_only=True)

    class Meta:
        model = Draft
        fields = [
            'id', 'intake', 'type', 'content', 'edited_content', 'status', 'model',
            'version', 'source_answers_fingerprint', 'is_finalized',
            'approved_at', 'approved_by', 'rejected_at', 'rejected_by', 'rejection_reason',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class StalenessRequestSerializer(serializers.Serializer):
    """
    Either a precomputed fingerprint or the raw answers (fingerprinted server side).
    """
    current_answers_fingerprint = serializers.CharField(required=False, max_length=64)
    answers = serializers.JSONField(required=False)

    def validate(self, attrs):
        if 'current_answers_fingerprint' not in attrs and 'answers' not in attrs:
            raise serializers.ValidationError(
                'Provide current_answers_fingerprint or answers.'
            )
        return attrs


class DraftApproveSerializer(StalenessRequestSerializer):
    edited_content = serializers.JSONField(required=False, allow_null=True)
    acknowledge_staleness = serializers.BooleanField(required=False, default=False)


class DraftRejectSerializer(serializers.Serializer):
    # Minimum length is enforced by the review service
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class DiffLineSerializer(serializers.Serializer):
    type = serializers.CharField()
    text = serializers.CharField(allow_blank=True, trim_whitespace=False)


class DiffResultSerializer(serializers.Serializer):
    lines = DiffLineSerializer(many=True)
    added_count = serializers.IntegerField()
    removed_count = serializers.IntegerField()
    unchanged_count = serializers.IntegerField()
    has_changes = serializers.BooleanField()
    fallback = serializers.BooleanField()
    reason = serializers.CharField(allow_null=True)
    original_text = serializers.CharField(allow_blank=True, trim_whitespace=False)
    edited_text = serializers.CharField(allow_blank=True, trim_whitespace=False)
