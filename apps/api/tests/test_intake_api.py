"""
Tests for the clinician review HTTP API.

Tests cover:
1. Authentication and Doctor/Admin role enforcement
2. Lifecycle endpoints and structured error responses (400 / 409)
3. Advisory lock endpoints
4. Draft staleness, diff and decision endpoints
5. Health checks
"""
import uuid

import pytest
from django.contrib.auth.models import Group, User
from rest_framework.test import APIClient

from apps.drafts.services import fingerprint_answers
from apps.intakes.models import IntakeStatusChoices, PaymentStatusChoices


def intake_url(intake, action=''):
    base = f'/api/v1/intakes/{intake.id}/'
    return f'{base}{action}/' if action else base


def draft_url(draft, action=''):
    base = f'/api/v1/drafts/{draft.id}/'
    return f'{base}{action}/' if action else base


# ============================================================================
# Access control
# ============================================================================

@pytest.mark.django_db
class TestAccess:

    def test_unauthenticated_is_rejected(self, api_client, intake):
        response = api_client.get('/api/v1/intakes/')

        assert response.status_code == 401

    def test_non_clinician_is_forbidden(self, patient_client, intake):
        response = patient_client.get('/api/v1/intakes/')

        assert response.status_code == 403

    def test_admin_group_has_access(self, intake):
        user = User.objects.create_user(username='ops_admin', password='testpass123')
        user.groups.add(Group.objects.create(name='Admin'))
        client = APIClient()
        client.force_authenticate(user=user)

        response = client.get('/api/v1/intakes/')

        assert response.status_code == 200

    def test_queue_is_filterable_by_status(self, clinician_client, intake, unpaid_intake):
        response = clinician_client.get('/api/v1/intakes/', {'status': 'in_review'})

        assert response.status_code == 200
        ids = [row['id'] for row in response.data['results']]
        assert ids == [str(intake.id)]

    def test_unknown_intake_is_404(self, clinician_client):
        response = clinician_client.post(
            f'/api/v1/intakes/{uuid.uuid4()}/transition/', {'new_status': 'approved'}, format='json'
        )

        assert response.status_code == 404


# ============================================================================
# Lifecycle endpoints
# ============================================================================

@pytest.mark.django_db
class TestTransitionEndpoint:

    def test_approve(self, clinician_client, clinician, documented_intake):
        response = clinician_client.post(
            intake_url(documented_intake, 'transition'),
            {'new_status': 'approved', 'expected_status': 'in_review'},
            format='json',
        )

        assert response.status_code == 200
        assert response.data['status'] == IntakeStatusChoices.APPROVED
        assert response.data['reviewed_by'] == str(clinician.pk)

    def test_policy_gate_returns_remedy(self, clinician_client, intake):
        response = clinician_client.post(
            intake_url(intake, 'transition'), {'new_status': 'approved'}, format='json'
        )

        assert response.status_code == 400
        assert response.data['error_type'] == 'insufficient_documentation'
        assert response.data['remedy'] == 'add_clinical_notes'
        assert 'error' in response.data

    def test_safety_acknowledgment_flag(self, clinician_client, high_risk_intake):
        blocked = clinician_client.post(
            intake_url(high_risk_intake, 'transition'), {'new_status': 'approved'}, format='json'
        )
        assert blocked.status_code == 400
        assert blocked.data['remedy'] == 'acknowledge_safety_flags'

        response = clinician_client.post(
            intake_url(high_risk_intake, 'transition'),
            {'new_status': 'approved', 'acknowledge_safety': True},
            format='json',
        )

        assert response.status_code == 200
        assert response.data['has_unacknowledged_safety_signal'] is False

    def test_invalid_transition(self, clinician_client, unpaid_intake):
        response = clinician_client.post(
            intake_url(unpaid_intake, 'transition'), {'new_status': 'completed'}, format='json'
        )

        assert response.status_code == 400
        assert response.data['error_type'] == 'invalid_transition'
        assert 'remedy' not in response.data

    def test_unknown_status_value_is_validation_error(self, clinician_client, intake):
        response = clinician_client.post(
            intake_url(intake, 'transition'), {'new_status': 'teleported'}, format='json'
        )

        assert response.status_code == 400
        assert 'new_status' in response.data

    def test_stale_expected_status_is_409(self, clinician_client, documented_intake):
        response = clinician_client.post(
            intake_url(documented_intake, 'transition'),
            {'new_status': 'approved', 'expected_status': 'pending_info'},
            format='json',
        )

        assert response.status_code == 409
        assert response.data['error_type'] == 'conflict'


@pytest.mark.django_db
class TestDecisionEndpoints:

    def test_decline(self, clinician_client, intake):
        response = clinician_client.post(
            intake_url(intake, 'decline'),
            {'reason_code': 'requires_examination', 'reason_note': 'Please see your GP in person.'},
            format='json',
        )

        assert response.status_code == 200
        assert response.data['status'] == IntakeStatusChoices.DECLINED
        assert response.data['decline_reason_code'] == 'requires_examination'

    def test_transition_endpoint_refuses_declined(self, clinician_client, intake):
        response = clinician_client.post(
            intake_url(intake, 'transition'), {'new_status': 'declined'}, format='json'
        )

        assert response.status_code == 400
        assert 'new_status' in response.data
        intake.refresh_from_db()
        assert intake.status == IntakeStatusChoices.IN_REVIEW

    def test_decline_with_unknown_code(self, clinician_client, intake):
        response = clinician_client.post(
            intake_url(intake, 'decline'),
            {'reason_code': 'too_busy', 'reason_note': 'Not today.'},
            format='json',
        )

        assert response.status_code == 400
        assert response.data['error_type'] == 'invalid_decline_reason'

    def test_decline_reasons_listing(self, clinician_client):
        response = clinician_client.get('/api/v1/intakes/decline-reasons/')

        assert response.status_code == 200
        by_code = {row['code']: row for row in response.data}
        assert len(by_code) == 9
        assert 'controlled substance' in by_code['controlled_substance']['template']
        assert by_code['other']['template'] == ''

    def test_refund_is_idempotent(self, clinician_client, intake):
        first = clinician_client.post(intake_url(intake, 'refund'), {'reason': 'Duplicate charge'}, format='json')
        second = clinician_client.post(intake_url(intake, 'refund'), {}, format='json')

        assert first.status_code == 200
        assert first.data['success'] is True
        assert first.data['intake']['payment_status'] == PaymentStatusChoices.REFUNDED
        assert second.status_code == 200
        assert second.data['success'] is False
        assert second.data['already_refunded'] is True

    def test_cancel_paid_intake_is_refused(self, clinician_client, intake):
        response = clinician_client.post(intake_url(intake, 'cancel'), format='json')

        assert response.status_code == 400
        assert response.data['error_type'] == 'invalid_transition'

    def test_cancel_unpaid_intake(self, clinician_client, unpaid_intake):
        response = clinician_client.post(intake_url(unpaid_intake, 'cancel'), format='json')

        assert response.status_code == 200
        assert response.data['status'] == IntakeStatusChoices.CANCELLED

    def test_save_notes_then_approve(self, clinician_client, intake):
        notes = clinician_client.post(
            intake_url(intake, 'notes'),
            {'clinical_notes': 'URTI symptoms 2 days, no red flags, fit for work'},
            format='json',
        )
        assert notes.status_code == 200

        response = clinician_client.post(
            intake_url(intake, 'transition'), {'new_status': 'approved'}, format='json'
        )

        assert response.status_code == 200


# ============================================================================
# Review locks
# ============================================================================

@pytest.mark.django_db
class TestLockEndpoint:

    def test_acquire_extend_release(self, clinician_client, clinician, intake):
        acquired = clinician_client.post(intake_url(intake, 'lock'), {}, format='json')
        assert acquired.status_code == 200
        assert acquired.data['acquired'] is True
        assert acquired.data['warning'] is None
        assert acquired.data['lock']['holder_id'] == str(clinician.pk)

        extended = clinician_client.patch(intake_url(intake, 'lock'), {'ttl_seconds': 600}, format='json')
        assert extended.data['extended'] is True

        released = clinician_client.delete(intake_url(intake, 'lock'))
        assert released.data == {'released': True}

    def test_second_clinician_is_warned_not_blocked(
        self, clinician_client, other_clinician_client, clinician, intake
    ):
        clinician_client.post(intake_url(intake, 'lock'), {}, format='json')

        response = other_clinician_client.post(intake_url(intake, 'lock'), {}, format='json')

        assert response.status_code == 200
        assert response.data['acquired'] is False
        assert response.data['warning'].startswith(f'Another clinician ({clinician.pk})')

    def test_ttl_is_bounded(self, clinician_client, intake):
        response = clinician_client.post(intake_url(intake, 'lock'), {'ttl_seconds': 86400}, format='json')

        assert response.status_code == 400


# ============================================================================
# Drafts
# ============================================================================

@pytest.mark.django_db
class TestDraftEndpoints:

    def test_list_by_intake(self, clinician_client, draft):
        response = clinician_client.get('/api/v1/drafts/', {'intake': str(draft.intake_id)})

        assert response.status_code == 200
        assert [row['id'] for row in response.data['results']] == [draft.id]

    def test_staleness_from_raw_answers(self, clinician_client, draft, certificate_answers):
        fresh = clinician_client.post(
            draft_url(draft, 'staleness'), {'answers': certificate_answers}, format='json'
        )
        stale = clinician_client.post(
            draft_url(draft, 'staleness'),
            {'answers': dict(certificate_answers, end_date='2024-05-09')},
            format='json',
        )

        assert fresh.data == {'is_stale': False, 'reason': None}
        assert stale.data['is_stale'] is True

    def test_staleness_needs_input(self, clinician_client, draft):
        response = clinician_client.post(draft_url(draft, 'staleness'), {}, format='json')

        assert response.status_code == 400

    def test_diff_without_edits(self, clinician_client, draft):
        response = clinician_client.get(draft_url(draft, 'diff'))

        assert response.status_code == 200
        assert response.data['has_changes'] is False
        assert response.data['fallback'] is False

    def test_approve_with_edits_then_diff(self, clinician_client, draft, certificate_answers):
        edited = dict(draft.content, body='Unfit for work 1 May to 3 May.')

        approved = clinician_client.post(
            draft_url(draft, 'approve'),
            {'edited_content': edited, 'answers': certificate_answers},
            format='json',
        )
        diff = clinician_client.get(draft_url(draft, 'diff'))

        assert approved.status_code == 200
        assert approved.data['is_finalized'] is True
        assert diff.data['added_count'] == 1
        assert diff.data['removed_count'] == 1

    def test_stale_approval_requires_acknowledgment(self, clinician_client, draft, certificate_answers):
        changed = fingerprint_answers(dict(certificate_answers, end_date='2024-05-09'))

        response = clinician_client.post(
            draft_url(draft, 'approve'), {'current_answers_fingerprint': changed}, format='json'
        )

        assert response.status_code == 400
        assert response.data['error_type'] == 'staleness_acknowledgment_required'
        assert response.data['remedy'] == 'acknowledge_staleness'

    def test_approve_requires_current_answers(self, clinician_client, draft):
        response = clinician_client.post(draft_url(draft, 'approve'), {}, format='json')

        assert response.status_code == 400
        draft.refresh_from_db()
        assert draft.approved_at is None

    def test_reject_needs_reason(self, clinician_client, draft):
        response = clinician_client.post(draft_url(draft, 'reject'), {'reason': 'no'}, format='json')

        assert response.status_code == 400
        assert response.data['error_type'] == 'rejection_reason_required'

    def test_double_decision_is_refused(self, clinician_client, draft, answers_fingerprint):
        clinician_client.post(draft_url(draft, 'reject'), {'reason': 'Wrong dates'}, format='json')

        response = clinician_client.post(
            draft_url(draft, 'approve'), {'current_answers_fingerprint': answers_fingerprint}, format='json'
        )

        assert response.status_code == 400
        assert response.data['error_type'] == 'draft_already_finalized'


# ============================================================================
# Health
# ============================================================================

@pytest.mark.django_db
class TestHealth:

    def test_healthz(self, client):
        response = client.get('/healthz')

        assert response.status_code == 200
        assert response.json()['status'] == 'ok'

    def test_readyz_checks_schema(self, client):
        response = client.get('/readyz')

        assert response.status_code == 200
        assert response.json()['checks'] == {'database': True, 'schema': True}

    def test_request_id_is_echoed(self, client):
        response = client.get('/healthz', HTTP_X_REQUEST_ID='req-123')

        assert response['X-Request-ID'] == 'req-123'
