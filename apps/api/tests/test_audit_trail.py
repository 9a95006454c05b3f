"""
Tests for the audit trail.

Business Rule: every mutation leaves an append-only, PHI-free record.

Tests cover:
1. record_mutation() redacts before writing
2. Entries cannot be modified or deleted
3. Unsanitized payloads are refused at the model level
4. Read-only admin
5. Audit listing API
"""
import uuid

import pytest
from django.contrib.admin.sites import AdminSite
from django.core.exceptions import ValidationError
from django.test import RequestFactory

from apps.audit.admin import AuditEntryAdmin
from apps.audit.models import AuditEntry
from apps.audit.services import AuditTrailWriter, record_mutation
from apps.core.redaction import REDACTED


@pytest.mark.django_db
class TestRecordMutation:

    def test_payloads_are_sanitized_before_storage(self):
        request_id = uuid.uuid4()

        entry = record_mutation(
            actor_id='42',
            action_type='clinical_notes_updated',
            previous_state={'clinical_notes': ''},
            new_state={'clinical_notes': 'Patient reports fever and cough'},
            metadata={'previous_length': 0, 'current_length': 31, 'email': 'jane@example.com'},
            request_id=request_id,
        )

        entry.refresh_from_db()
        assert entry.request_id == request_id
        assert entry.actor_id == '42'
        assert entry.previous_state == {'clinical_notes': ''}
        assert entry.new_state == {'clinical_notes': REDACTED}
        assert entry.metadata == {'previous_length': 0, 'current_length': 31, 'email': REDACTED}

    def test_request_id_is_optional(self):
        entry = AuditTrailWriter().append('system', 'maintenance', metadata={'count': 3})

        assert entry.request_id is None
        assert entry.previous_state == {}
        assert entry.new_state == {}

    def test_non_json_values_are_stored_as_strings(self):
        draft_uuid = uuid.uuid4()

        entry = record_mutation('7', 'draft_created', None, {'draft_id': draft_uuid})

        entry.refresh_from_db()
        assert entry.new_state == {'draft_id': str(draft_uuid)}


@pytest.mark.django_db
class TestAppendOnly:

    @pytest.fixture
    def entry(self):
        return record_mutation('7', 'status_change', {'status': 'in_review'}, {'status': 'approved'})

    def test_entry_cannot_be_modified(self, entry):
        entry.action_type = 'tampered'

        with pytest.raises(ValidationError):
            entry.save()

        assert AuditEntry.objects.get(pk=entry.pk).action_type == 'status_change'

    def test_entry_cannot_be_deleted(self, entry):
        with pytest.raises(ValidationError):
            entry.delete()

        assert AuditEntry.objects.filter(pk=entry.pk).exists()

    def test_unsanitized_payload_is_refused(self):
        """Writing around record_mutation() cannot persist PHI."""
        with pytest.raises(ValidationError):
            AuditEntry.objects.create(
                actor_id='7',
                action_type='status_change',
                new_state={'clinical_notes': 'Patient reports fever'},
            )

        assert AuditEntry.objects.count() == 0


@pytest.mark.django_db
class TestAuditEntryAdmin:

    def test_admin_is_read_only(self, clinician):
        entry = record_mutation('7', 'status_change', {'status': 'in_review'}, {'status': 'approved'})
        request = RequestFactory().get('/admin/')
        request.user = clinician
        model_admin = AuditEntryAdmin(AuditEntry, AdminSite())

        assert model_admin.has_add_permission(request) is False
        assert model_admin.has_change_permission(request, entry) is False
        assert model_admin.has_delete_permission(request, entry) is False


@pytest.mark.django_db
class TestAuditAPI:

    def test_list_filtered_by_request(self, clinician_client):
        request_id = uuid.uuid4()
        record_mutation('7', 'status_change', {'status': 'in_review'}, {'status': 'approved'},
                        request_id=request_id)
        record_mutation('7', 'status_change', {'status': 'paid'}, {'status': 'in_review'},
                        request_id=uuid.uuid4())

        response = clinician_client.get('/api/v1/audit/', {'request_id': str(request_id)})

        assert response.status_code == 200
        results = response.data['results']
        assert len(results) == 1
        assert results[0]['new_state'] == {'status': 'approved'}

    def test_invalid_request_id_returns_empty_list(self, clinician_client):
        record_mutation('7', 'status_change', {}, {'status': 'approved'}, request_id=uuid.uuid4())

        response = clinician_client.get('/api/v1/audit/', {'request_id': 'not-a-uuid'})

        assert response.status_code == 200
        results = response.data['results']
        assert results == []

    def test_requires_clinical_role(self, patient_client):
        response = patient_client.get('/api/v1/audit/')

        assert response.status_code == 403
