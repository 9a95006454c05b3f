"""Intake views."""
import time

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.observability import get_sanitized_logger
from apps.core.observability.metrics import metrics
from apps.review_locks.services import ReviewLockManager

from .exceptions import Conflict, CoordinatorError
from .lifecycle import RequestLifecycle
from .models import Intake
from .permissions import IsClinician
from .serializers import (
    ClinicalNotesSerializer,
    DeclineReasonSerializer,
    IntakeDeclineSerializer,
    IntakeRefundSerializer,
    IntakeSerializer,
    IntakeTransitionSerializer,
    LockRequestSerializer,
    ReviewLockSerializer,
)

logger = get_sanitized_logger(__name__)


def coordinator_error_response(error, intake_id, operation):
    """
    Translate a domain error into a structured response.

    Conflict -> 409, every other gate or validation failure -> 400.
    """
    http_status = status.HTTP_409_CONFLICT if isinstance(error, Conflict) else status.HTTP_400_BAD_REQUEST
    logger.warning(
        f'Intake {operation} refused: {error.code}',
        extra={
            'event': f'intake_{operation}_refused',
            'intake_id': str(intake_id),
            'error_type': error.code,
        }
    )
    metrics.exceptions_total.labels(exception_type=error.code, location=f'intake_{operation}').inc()
    return Response(error.as_dict(), status=http_status)


class IntakeViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for the clinician review queue.

    Additional endpoints:
    - POST /intakes/{id}/transition/ - Change status through the lifecycle
    - POST /intakes/{id}/decline/ - Decline with reason code and note
    - POST /intakes/{id}/refund/ - Mark payment refunded (idempotent)
    - POST /intakes/{id}/cancel/ - Cancel an unpaid intake
    - POST /intakes/{id}/notes/ - Save clinical notes
    - POST/PATCH/DELETE /intakes/{id}/lock/ - Advisory review lock
    - GET /intakes/decline-reasons/ - Decline taxonomy with templates
    """
    queryset = Intake.objects.all()
    serializer_class = IntakeSerializer
    permission_classes = [IsClinician]
    ordering = ['-created_at']

    def get_queryset(self):
        queryset = super().get_queryset()
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        category = self.request.query_params.get('category')
        if category:
            queryset = queryset.filter(category=category)
        return queryset

    def get_lifecycle(self):
        return RequestLifecycle()

    def get_lock_manager(self):
        return ReviewLockManager()

    def _actor_id(self, request):
        return str(request.user.pk)

    @action(detail=True, methods=['post'], url_path='transition')
    def transition(self, request, pk=None):
        """
        Transition intake to a new status.

        POST /api/v1/intakes/{id}/transition/
        {
            "new_status": "approved",
            "acknowledge_safety": true,
            "expected_status": "in_review"
        }

        Returns:
        - 200: Transition successful
        - 400: Invalid transition or policy gate failure (error, error_type, remedy)
        - 404: Intake not found
        - 409: Intake changed concurrently
        """
        start_time = time.time()
        intake = self.get_object()

        serializer = IntakeTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            intake = self.get_lifecycle().transition(
                intake.id,
                data['new_status'],
                self._actor_id(request),
                acknowledge_safety=data.get('acknowledge_safety', False),
                expected_status=data.get('expected_status'),
            )
        except CoordinatorError as e:
            return coordinator_error_response(e, intake.id, 'transition')

        logger.info(
            'Intake transitioned via API',
            extra={
                'event': 'intake_transition_api',
                'intake_id': str(intake.id),
                'to_status': intake.status,
                'duration_ms': int((time.time() - start_time) * 1000),
            }
        )
        return Response(IntakeSerializer(intake).data)

    @action(detail=True, methods=['post'], url_path='decline')
    def decline(self, request, pk=None):
        """
        POST /api/v1/intakes/{id}/decline/
        {"reason_code": "controlled_substance", "reason_note": "..."}
        """
        intake = self.get_object()
        serializer = IntakeDeclineSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            intake = self.get_lifecycle().decline(
                intake.id,
                serializer.validated_data['reason_code'],
                serializer.validated_data['reason_note'],
                self._actor_id(request),
            )
        except CoordinatorError as e:
            return coordinator_error_response(e, intake.id, 'decline')

        return Response(IntakeSerializer(intake).data)

    @action(detail=True, methods=['post'], url_path='refund')
    def refund(self, request, pk=None):
        """
        POST /api/v1/intakes/{id}/refund/
        {"reason": "..."}

        A repeated refund returns 200 with already_refunded=true.
        """
        intake = self.get_object()
        serializer = IntakeRefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = self.get_lifecycle().mark_refunded(
                intake.id,
                self._actor_id(request),
                reason=serializer.validated_data['reason'] or None,
            )
        except CoordinatorError as e:
            return coordinator_error_response(e, intake.id, 'refund')

        return Response({
            'success': result.success,
            'already_refunded': result.already_refunded,
            'intake': IntakeSerializer(result.intake).data,
        })

    @action(detail=True, methods=['post'], url_path='cancel')
    def cancel(self, request, pk=None):
        intake = self.get_object()
        try:
            intake = self.get_lifecycle().cancel(intake.id, self._actor_id(request))
        except CoordinatorError as e:
            return coordinator_error_response(e, intake.id, 'cancel')
        return Response(IntakeSerializer(intake).data)

    @action(detail=True, methods=['post'], url_path='notes')
    def notes(self, request, pk=None):
        """
        POST /api/v1/intakes/{id}/notes/
        {"clinical_notes": "..."}
        """
        intake = self.get_object()
        serializer = ClinicalNotesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            intake = self.get_lifecycle().save_clinical_notes(
                intake.id,
                serializer.validated_data['clinical_notes'],
                self._actor_id(request),
            )
        except CoordinatorError as e:
            return coordinator_error_response(e, intake.id, 'notes')
        return Response(IntakeSerializer(intake).data)

    @action(detail=False, methods=['get'], url_path='decline-reasons')
    def decline_reasons(self, request):
        serializer = DeclineReasonSerializer(DeclineReasonSerializer.reasons(), many=True)
        return Response(serializer.data)

    @action(detail=True, methods=['post', 'patch', 'delete'], url_path='lock')
    def lock(self, request, pk=None):
        """
        Advisory review lock.

        POST   - acquire (always 200; warning names the current holder)
        PATCH  - extend the caller's lock
        DELETE - release the caller's lock
        """
        intake = self.get_object()
        manager = self.get_lock_manager()
        actor_id = self._actor_id(request)

        if request.method == 'DELETE':
            released = manager.release(intake.id, actor_id)
            return Response({'released': released})

        serializer = LockRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ttl = serializer.validated_data.get('ttl_seconds')

        if request.method == 'PATCH':
            extended = manager.extend(intake.id, actor_id, ttl=ttl)
            return Response({
                'extended': extended,
                'lock': ReviewLockSerializer(manager.get_active_lock(intake.id)).data if extended else None,
            })

        result = manager.acquire(intake.id, actor_id, ttl=ttl)
        return Response({
            'acquired': result.acquired,
            'warning': result.warning,
            'lock': ReviewLockSerializer(result.lock).data if result.lock else None,
        })
