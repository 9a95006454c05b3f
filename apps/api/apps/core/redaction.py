"""
PHI/PII redaction engine.

Classifies keys of arbitrary nested records and scrubs sensitive values
before they reach durable storage (audit trail) or structured logs.

Classification order for every key:
1. sensitive (exact vocabulary, then key patterns) -> value replaced
2. safe (explicit allow-list of ids, statuses, timestamps, amounts, tags)
   -> scalar kept verbatim
3. unknown -> recursed; scalar strings still checked for identifier-like
   content (emails, phone/medicare-length digit runs, long narrative text)

sanitize() is total: anything it cannot classify is redacted, it never raises.
Output of sanitize() is a fixed point: sanitize(sanitize(x)) == sanitize(x).
"""
import logging
import re
import uuid
from datetime import date, datetime, time
from decimal import Decimal

logger = logging.getLogger(__name__)

REDACTED = '[REDACTED]'
REDACTED_DEPTH = '[REDACTED_DEPTH]'
REDACTED_ARRAY_TEMPLATE = '[REDACTED_ARRAY:{count} items]'

MAX_DEPTH = 12

# Strings under unknown keys longer than this are treated as narrative text
MAX_UNKNOWN_STRING_LENGTH = 120


SENSITIVE_KEYS = frozenset({
    # Clinical narrative
    'clinical_notes',
    'doctor_notes',
    'notes',
    'note',
    'internal_notes',
    'chief_complaint',
    'assessment',
    'plan',
    'diagnosis',
    'symptoms',
    'medical_history',
    'medications',
    'allergies',
    'answers',
    'content',
    'edited_content',
    'transcript',
    'message',
    'reason',
    'decline_reason_note',
    'rejection_reason',
    'refund_reason',
    # Identity / contact
    'first_name',
    'last_name',
    'full_name',
    'name',
    'email',
    'phone',
    'phone_number',
    'mobile',
    'address',
    'street_address',
    'suburb',
    'postcode',
    'date_of_birth',
    'dob',
    'birth_date',
    'medicare_number',
    'medicare_irn',
    'ihi',
    'ssn',
    'ip_address',
    'user_agent',
    # Documents / storage
    'pdf_url',
    'document_url',
    'signed_url',
    'storage_path',
    'file_path',
    # Credentials
    'password',
    'token',
    'secret',
    'api_key',
})

SENSITIVE_KEY_PATTERNS = tuple(re.compile(p) for p in (
    r'note',
    r'narrative',
    r'comment',
    r'description',
    r'symptom',
    r'history',
    r'medication',
    r'complaint',
    r'diagnos',
    r'(^|_)name$',
    r'email',
    r'phone',
    r'mobile',
    r'address',
    r'birth',
    r'medicare',
    r'passport',
    r'licen[cs]e_number',
    r'(^|_)url$',
    r'(^|_)path$',
    r'storage',
    r'password',
    r'secret',
    r'token',
    r'(^|_)reason$',
))

SAFE_KEYS = frozenset({
    'id',
    'pk',
    'status',
    'payment_status',
    'category',
    'type',
    'kind',
    'action',
    'action_type',
    'risk_tier',
    'requires_live_consult',
    'reference_number',
    'version',
    'count',
    'amount',
    'amount_cents',
    'currency',
    'decline_reason_code',
    'reason_code',
    'from_status',
    'to_status',
    'previous_status',
    'new_status',
    'has_edits',
    'is_stale',
    'acknowledged',
    'ttl_seconds',
    'model',
})

SAFE_KEY_SUFFIXES = (
    '_id',
    '_ids',
    '_at',
    '_status',
    '_count',
    '_cents',
    '_amount',
    '_type',
    '_code',
    '_length',
    '_version',
    '_seconds',
    '_minutes',
    '_fingerprint',
)

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')
_EMAIL_RE = re.compile(r'[^@\s]+@[^@\s]+\.[^@\s]+')
_ID_SEPARATORS_RE = re.compile(r'[\s\-().+/]')
_MARKER_RE = re.compile(r'^\[REDACTED(_DEPTH|_ARRAY:\d+ items)?\]$')


class KeyClass:
    SENSITIVE = 'sensitive'
    SAFE = 'safe'
    UNKNOWN = 'unknown'


def normalize_key(key):
    """Normalize camelCase / kebab-case / spaced keys to snake_case."""
    text = _CAMEL_BOUNDARY.sub('_', str(key))
    return re.sub(r'[\s\-]+', '_', text).lower()


def classify_key(key):
    """Return the KeyClass for a record key."""
    normalized = normalize_key(key)
    if normalized in SENSITIVE_KEYS:
        return KeyClass.SENSITIVE
    if any(p.search(normalized) for p in SENSITIVE_KEY_PATTERNS):
        return KeyClass.SENSITIVE
    if normalized in SAFE_KEYS or normalized.endswith(SAFE_KEY_SUFFIXES):
        return KeyClass.SAFE
    return KeyClass.UNKNOWN


def is_redaction_marker(value):
    return isinstance(value, str) and bool(_MARKER_RE.match(value))


def looks_like_identifier(text):
    """
    True for strings shaped like contact details or identifiers:
    email addresses and 8-15 digit runs (phone, medicare, IHI numbers).
    """
    stripped = text.strip()
    if _EMAIL_RE.fullmatch(stripped):
        return True
    digits = _ID_SEPARATORS_RE.sub('', stripped)
    return digits.isdigit() and 8 <= len(digits) <= 15


def _is_empty(value):
    return value is None or value == '' or value == [] or value == {}


def _to_json_scalar(value):
    """Coerce known non-JSON scalars to strings. Raises TypeError otherwise."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    raise TypeError(f'Unclassifiable value of type {type(value).__name__}')


def _sanitize_unknown_scalar(value):
    value = _to_json_scalar(value)
    if isinstance(value, str) and not is_redaction_marker(value):
        if len(value) > MAX_UNKNOWN_STRING_LENGTH or looks_like_identifier(value):
            return REDACTED
    return value


def _sanitize_value(value, depth):
    if depth > MAX_DEPTH:
        return REDACTED_DEPTH

    if isinstance(value, dict):
        return {
            str(k): _sanitize_entry(k, v, depth + 1)
            for k, v in value.items()
        }

    if isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
        if any(isinstance(item, (dict, list, tuple, set, frozenset)) for item in items):
            return REDACTED_ARRAY_TEMPLATE.format(count=len(items))
        return [_sanitize_unknown_scalar(item) for item in items]

    return _sanitize_unknown_scalar(value)


def _sanitize_entry(key, value, depth):
    key_class = classify_key(key)

    if key_class == KeyClass.SENSITIVE:
        return value if _is_empty(value) else REDACTED

    if key_class == KeyClass.SAFE and not isinstance(value, (dict, list, tuple, set, frozenset)):
        try:
            return _to_json_scalar(value)
        except TypeError:
            return REDACTED

    try:
        return _sanitize_value(value, depth)
    except Exception:
        logger.warning(
            'Redaction fell back to full redaction',
            extra={'event': 'redaction_fallback', 'value_type': type(value).__name__},
        )
        return REDACTED


def sanitize(value):
    """
    Recursively sanitize an arbitrary record for durable storage.

    Returns a JSON-serializable copy. Never raises.
    """
    try:
        return _sanitize_value(value, 0)
    except Exception:
        logger.warning(
            'Redaction fell back to full redaction',
            extra={'event': 'redaction_fallback', 'value_type': type(value).__name__},
        )
        return REDACTED


def count_redactions(value):
    """Count redaction markers in a sanitized payload (for metrics)."""
    if isinstance(value, dict):
        return sum(count_redactions(v) for v in value.values())
    if isinstance(value, list):
        return sum(count_redactions(v) for v in value)
    return 1 if is_redaction_marker(value) else 0
