"""Audit views."""
import uuid

from rest_framework import viewsets

from apps.intakes.permissions import IsClinician

from .models import AuditEntry
from .serializers import AuditEntrySerializer


class AuditEntryViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only listing of the audit trail.

    GET /api/v1/audit/?request_id={intake_id}
    """
    serializer_class = AuditEntrySerializer
    permission_classes = [IsClinician]

    def get_queryset(self):
        queryset = AuditEntry.objects.all()
        request_id = self.request.query_params.get('request_id')
        if request_id:
            try:
                queryset = queryset.filter(request_id=uuid.UUID(request_id))
            except ValueError:
                return queryset.none()
        action_type = self.request.query_params.get('action_type')
        if action_type:
            queryset = queryset.filter(action_type=action_type)
        return queryset.order_by('created_at')
