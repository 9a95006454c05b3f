"""Draft views."""
import uuid

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.observability import get_sanitized_logger
from apps.intakes.exceptions import CoordinatorError
from apps.intakes.permissions import IsClinician
from apps.intakes.views import coordinator_error_response

from .diff import compute_diff
from .models import Draft
from .serializers import (
    DiffResultSerializer,
    DraftApproveSerializer,
    DraftRejectSerializer,
    DraftSerializer,
    StalenessRequestSerializer,
)
from .services import DraftReviewService, evaluate_staleness, fingerprint_answers

logger = get_sanitized_logger(__name__)


def _fingerprint_from(data):
    if data.get('current_answers_fingerprint'):
        return data['current_answers_fingerprint']
    if 'answers' in data:
        return fingerprint_answers(data['answers'])
    return None


class DraftViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for draft review.

    Additional endpoints:
    - POST /drafts/{id}/staleness/ - Compare current answers with the draft's source
    - GET /drafts/{id}/diff/ - Diff generated content against clinician edits
    - POST /drafts/{id}/approve/ - Approve (optionally with edits)
    - POST /drafts/{id}/reject/ - Reject with reason
    """
    serializer_class = DraftSerializer
    permission_classes = [IsClinician]

    def get_queryset(self):
        queryset = Draft.objects.all()
        intake_id = self.request.query_params.get('intake')
        if intake_id:
            try:
                queryset = queryset.filter(intake_id=uuid.UUID(intake_id))
            except ValueError:
                return queryset.none()
        draft_type = self.request.query_params.get('type')
        if draft_type:
            queryset = queryset.filter(type=draft_type)
        return queryset.order_by('intake', 'type', '-version')

    def get_review_service(self):
        return DraftReviewService()

    @action(detail=True, methods=['post'], url_path='staleness')
    def staleness(self, request, pk=None):
        draft = self.get_object()
        serializer = StalenessRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = evaluate_staleness(draft, _fingerprint_from(serializer.validated_data))
        return Response({'is_stale': result.is_stale, 'reason': result.reason})

    @action(detail=True, methods=['get'], url_path='diff')
    def diff(self, request, pk=None):
        draft = self.get_object()
        edited = draft.edited_content if draft.edited_content is not None else draft.content
        result = compute_diff(draft.content, edited)
        return Response(DiffResultSerializer(result).data)

    @action(detail=True, methods=['post'], url_path='approve')
    def approve(self, request, pk=None):
        """
        POST /api/v1/drafts/{id}/approve/
        {
            "edited_content": {...},                 // optional
            "current_answers_fingerprint": "...",    // or "answers": {...}
            "acknowledge_staleness": false
        }
        """
        draft = self.get_object()
        serializer = DraftApproveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            draft = self.get_review_service().approve(
                draft.id,
                str(request.user.pk),
                edited_content=data.get('edited_content'),
                current_answers_fingerprint=_fingerprint_from(data),
                acknowledge_staleness=data['acknowledge_staleness'],
            )
        except CoordinatorError as e:
            return coordinator_error_response(e, draft.intake_id, 'draft_approve')
        return Response(DraftSerializer(draft).data)

    @action(detail=True, methods=['post'], url_path='reject')
    def reject(self, request, pk=None):
        draft = self.get_object()
        serializer = DraftRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            draft = self.get_review_service().reject(
                draft.id,
                str(request.user.pk),
                serializer.validated_data['reason'],
            )
        except CoordinatorError as e:
            return coordinator_error_response(e, draft.intake_id, 'draft_reject')
        return Response(DraftSerializer(draft).data)
