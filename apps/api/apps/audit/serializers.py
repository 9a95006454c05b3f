"""Audit serializers (read-only)."""
from rest_framework import serializers
from .models import AuditEntry


class AuditEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditEntry
        fields = [
            'id',
            'request_id',
            'actor_id',
            'action_type',
            'previous_state',
            'new_state',
            'metadata',
            'created_at',
        ]
        read_only_fields = fields
