"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Authenticated API clients by role
- Model instances (Intake, Draft)
"""
import pytest
from django.contrib.auth.models import Group, User
from rest_framework.test import APIClient

from apps.core.observability.correlation import clear_request_context
from apps.drafts.models import Draft, DraftStatusChoices, DraftTypeChoices
from apps.drafts.services import fingerprint_answers
from apps.intakes.models import (
    Intake,
    IntakeCategoryChoices,
    IntakeStatusChoices,
    PaymentStatusChoices,
    RiskTierChoices,
)

URTI_NOTES = 'URTI symptoms 2 days, no red flags, fit for work'

CERTIFICATE_ANSWERS = {
    'certificate_type': 'work',
    'start_date': '2024-05-01',
    'end_date': '2024-05-02',
    'symptoms': ['sore throat', 'runny nose'],
}


@pytest.fixture(autouse=True)
def _reset_request_context():
    yield
    clear_request_context()


# ============================================================================
# Users and API Clients
# ============================================================================

def _make_clinician(username, group_name='Doctor'):
    user = User.objects.create_user(username=username, password='testpass123')
    group, _ = Group.objects.get_or_create(name=group_name)
    user.groups.add(group)
    return user


@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def clinician(db):
    """User in the Doctor group."""
    return _make_clinician('dr_smith')


@pytest.fixture
def other_clinician(db):
    """A second Doctor, used for lock contention."""
    return _make_clinician('dr_jones')


@pytest.fixture
def clinician_client(clinician):
    client = APIClient()
    client.force_authenticate(user=clinician)
    return client


@pytest.fixture
def other_clinician_client(other_clinician):
    client = APIClient()
    client.force_authenticate(user=other_clinician)
    return client


@pytest.fixture
def patient_client(db):
    """Authenticated user without a clinical role."""
    user = User.objects.create_user(username='patient', password='testpass123')
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Intakes
# ============================================================================

@pytest.fixture
def make_intake(db):
    """
    Factory for intakes in an arbitrary state.

    Defaults to a paid, low-risk medical certificate request in review.
    """
    def _make(**overrides):
        fields = {
            'category': IntakeCategoryChoices.MEDICAL_CERTIFICATE,
            'status': IntakeStatusChoices.IN_REVIEW,
            'payment_status': PaymentStatusChoices.PAID,
            'risk_tier': RiskTierChoices.LOW,
        }
        fields.update(overrides)
        return Intake.objects.create(**fields)
    return _make


@pytest.fixture
def intake(make_intake):
    """Paid medical certificate in review, no notes yet."""
    return make_intake()


@pytest.fixture
def documented_intake(make_intake):
    """Paid medical certificate in review with adequate clinical notes."""
    return make_intake(clinical_notes=URTI_NOTES)


@pytest.fixture
def prescription_intake(make_intake):
    return make_intake(
        category=IntakeCategoryChoices.PRESCRIPTION,
        clinical_notes='Repeat script, stable on current dose for 12 months',
    )


@pytest.fixture
def high_risk_intake(make_intake):
    return make_intake(
        risk_tier=RiskTierChoices.HIGH,
        red_flags=['chest_pain'],
        clinical_notes='Chest tightness reviewed, advised ED if worsening',
    )


@pytest.fixture
def unpaid_intake(make_intake):
    return make_intake(
        status=IntakeStatusChoices.PENDING_PAYMENT,
        payment_status=PaymentStatusChoices.PENDING_PAYMENT,
    )


# ============================================================================
# Drafts
# ============================================================================

@pytest.fixture
def certificate_answers():
    """Questionnaire answers the draft fixture was generated from."""
    return dict(CERTIFICATE_ANSWERS)


@pytest.fixture
def answers_fingerprint(certificate_answers):
    return fingerprint_answers(certificate_answers)


@pytest.fixture
def draft(documented_intake, answers_fingerprint):
    """Ready medical certificate draft generated from CERTIFICATE_ANSWERS."""
    return Draft.objects.create(
        intake=documented_intake,
        type=DraftTypeChoices.MED_CERT,
        status=DraftStatusChoices.READY,
        content={
            'heading': 'Medical Certificate',
            'body': 'Unfit for work 1 May to 2 May.',
        },
        model='gpt-4o-mini',
        source_answers_fingerprint=answers_fingerprint,
    )
