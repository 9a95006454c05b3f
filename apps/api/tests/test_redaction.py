"""
Tests for the PHI/PII redaction engine.

Business Rule: nothing that identifies a patient or describes their
condition may reach the audit trail or the logs.

Tests cover:
1. Key classification (sensitive / safe / unknown, case-insensitive)
2. Value scrubbing for unknown keys (emails, phone-length digits, narrative)
3. Arrays of objects and depth limits
4. Totality: sanitize() never raises and is a fixed point
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from apps.core.redaction import (
    MAX_DEPTH,
    REDACTED,
    REDACTED_DEPTH,
    KeyClass,
    classify_key,
    count_redactions,
    is_redaction_marker,
    looks_like_identifier,
    normalize_key,
    sanitize,
)


class TestKeyClassification:

    def test_clinical_narrative_keys_are_sensitive(self):
        for key in ('clinical_notes', 'symptoms', 'decline_reason_note', 'answers', 'diagnosis'):
            assert classify_key(key) == KeyClass.SENSITIVE, key

    def test_identity_keys_are_sensitive(self):
        for key in ('first_name', 'email', 'phone', 'medicare_number', 'date_of_birth', 'address'):
            assert classify_key(key) == KeyClass.SENSITIVE, key

    def test_classification_ignores_case_and_separators(self):
        assert normalize_key('firstName') == 'first_name'
        assert normalize_key('Date-Of-Birth') == 'date_of_birth'
        assert classify_key('FirstName') == KeyClass.SENSITIVE
        assert classify_key('patientEmail') == KeyClass.SENSITIVE
        assert classify_key('Clinical Notes') == KeyClass.SENSITIVE

    def test_ids_statuses_and_codes_are_safe(self):
        for key in ('status', 'payment_status', 'intake_id', 'approved_at',
                    'decline_reason_code', 'amount_cents', 'risk_tier'):
            assert classify_key(key) == KeyClass.SAFE, key

    def test_sensitive_wins_over_safe_suffix(self):
        # Ends in _id-like suffix but names a contact detail
        assert classify_key('email_address_id') == KeyClass.SENSITIVE

    def test_unrecognised_keys_are_unknown(self):
        assert classify_key('certificate_type_hint') == KeyClass.UNKNOWN
        assert classify_key('widget') == KeyClass.UNKNOWN


class TestSanitize:

    def test_sensitive_values_are_replaced(self):
        result = sanitize({
            'clinical_notes': 'URTI symptoms 2 days',
            'first_name': 'Jane',
            'status': 'approved',
        })

        assert result == {
            'clinical_notes': REDACTED,
            'first_name': REDACTED,
            'status': 'approved',
        }

    def test_empty_sensitive_values_are_kept(self):
        """An empty note carries no PHI; keeping it shows the field was blank."""
        result = sanitize({'clinical_notes': '', 'symptoms': [], 'email': None})

        assert result == {'clinical_notes': '', 'symptoms': [], 'email': None}

    def test_safe_scalars_are_coerced_to_json(self):
        intake_id = uuid.uuid4()
        when = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)

        result = sanitize({
            'intake_id': intake_id,
            'approved_at': when,
            'amount': Decimal('29.95'),
            'requires_live_consult': False,
        })

        assert result == {
            'intake_id': str(intake_id),
            'approved_at': when.isoformat(),
            'amount': '29.95',
            'requires_live_consult': False,
        }

    def test_unknown_keys_with_identifier_values_are_redacted(self):
        result = sanitize({
            'contact': 'jane.citizen@example.com',
            'callback': '0412 345 678',
            'ref': '2953 14071 1',
            'label': 'work',
        })

        assert result['contact'] == REDACTED
        assert result['callback'] == REDACTED
        assert result['ref'] == REDACTED
        assert result['label'] == 'work'

    def test_long_text_under_unknown_key_is_redacted(self):
        result = sanitize({'summary': 'x' * 121, 'short': 'x' * 120})

        assert result['summary'] == REDACTED
        assert result['short'] == 'x' * 120

    def test_nested_records_are_recursed(self):
        result = sanitize({
            'patient': {'first_name': 'Jane', 'patient_id': 'p-1'},
            'tags': ['urgent', 'repeat'],
        })

        assert result == {
            'patient': {'first_name': REDACTED, 'patient_id': 'p-1'},
            'tags': ['urgent', 'repeat'],
        }

    def test_arrays_of_objects_are_collapsed(self):
        result = sanitize({'items': [{'name': 'Amoxicillin'}, {'name': 'Ibuprofen'}, {}]})

        assert result == {'items': '[REDACTED_ARRAY:3 items]'}
        assert is_redaction_marker(result['items'])

    def test_deep_nesting_is_cut_off(self):
        record = leaf = {}
        for _ in range(MAX_DEPTH + 5):
            leaf['level'] = {}
            leaf = leaf['level']

        result = sanitize(record)

        node = result
        while isinstance(node, dict):
            node = node['level']
        assert node == REDACTED_DEPTH

    def test_unclassifiable_values_are_redacted_not_raised(self):
        result = sanitize({'status': object(), 'widget': object()})

        assert result == {'status': REDACTED, 'widget': REDACTED}
        assert sanitize(object()) == REDACTED

    def test_output_is_a_fixed_point(self):
        record = {
            'clinical_notes': 'URTI symptoms',
            'items': [{'a': 1}],
            'contact': 'jane@example.com',
            'intake_id': uuid.uuid4(),
            'nested': {'email': 'x@y.com', 'to_status': 'approved'},
        }

        once = sanitize(record)

        assert sanitize(once) == once


class TestHelpers:

    def test_looks_like_identifier(self):
        assert looks_like_identifier('jane@example.com')
        assert looks_like_identifier('+61 412 345 678')
        assert not looks_like_identifier('1234567')
        assert not looks_like_identifier('approved')

    def test_count_redactions(self):
        payload = sanitize({
            'clinical_notes': 'x',
            'nested': {'email': 'a@b.co', 'status': 'paid'},
            'items': [{'a': 1}],
        })

        assert count_redactions(payload) == 3
