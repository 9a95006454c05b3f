"""
Request correlation.

Generates/propagates X-Request-ID and keeps the acting clinician's identity
in thread-local context so logs and background tasks can be correlated with
the HTTP request that caused them.
"""
import uuid
import time
import logging
from contextlib import contextmanager
from threading import local

from django.utils.deprecation import MiddlewareMixin

_request_context = local()

_CONTEXT_ATTRS = ('request_id', 'trace_id', 'span_id', 'user_id', 'user_roles')

logger = logging.getLogger(__name__)


def get_request_id():
    return getattr(_request_context, 'request_id', None)


def get_trace_id():
    return getattr(_request_context, 'trace_id', None)


def get_user_id():
    """Identity of the acting user for the current request, if any."""
    return getattr(_request_context, 'user_id', None)


def get_user_roles():
    return getattr(_request_context, 'user_roles', [])


def clear_request_context():
    """Clear thread-local request context (useful for testing)."""
    for attr in _CONTEXT_ATTRS:
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)


@contextmanager
def request_context(request_id=None, user_id=None, user_roles=None):
    """
    Bind correlation context outside the HTTP cycle (Celery tasks, shells).

    Usage:
        with request_context(request_id=task_request_id, user_id=actor_id):
            ...
    """
    previous = {attr: getattr(_request_context, attr, None) for attr in _CONTEXT_ATTRS}
    _request_context.request_id = request_id or str(uuid.uuid4())
    _request_context.user_id = user_id
    _request_context.user_roles = list(user_roles or [])
    try:
        yield _request_context.request_id
    finally:
        for attr, value in previous.items():
            setattr(_request_context, attr, value)


class RequestCorrelationMiddleware(MiddlewareMixin):
    """
    Middleware to handle request correlation.

    - Generates/propagates X-Request-ID
    - Stores request and user context in thread-local for logging
    - Adds correlation headers to response
    - Logs request duration
    """

    REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'
    TRACE_ID_HEADER = 'HTTP_X_TRACE_ID'
    SPAN_ID_HEADER = 'HTTP_X_SPAN_ID'

    def process_request(self, request):
        request.request_id = request.META.get(self.REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.trace_id = request.META.get(self.TRACE_ID_HEADER)
        request.span_id = request.META.get(self.SPAN_ID_HEADER)
        request.start_time = time.time()

        _request_context.request_id = request.request_id
        _request_context.trace_id = request.trace_id
        _request_context.span_id = request.span_id

        # Populated only when placed after AuthenticationMiddleware
        user = getattr(request, 'user', None)
        if user is not None and user.is_authenticated:
            _request_context.user_id = str(user.pk)
            _request_context.user_roles = list(
                user.groups.values_list('name', flat=True)
            )
        else:
            _request_context.user_id = None
            _request_context.user_roles = []

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        if getattr(request, 'trace_id', None):
            response['X-Trace-ID'] = request.trace_id

        if hasattr(request, 'start_time'):
            duration_ms = (time.time() - request.start_time) * 1000
            logger.info(
                'Request completed',
                extra={
                    'event': 'http_request_completed',
                    'route': request.path,
                    'method': request.method,
                    'status_code': response.status_code,
                    'duration_ms': round(duration_ms, 2),
                }
            )

        clear_request_context()
        return response

    def process_exception(self, request, exception):
        duration_ms = 0
        if hasattr(request, 'start_time'):
            duration_ms = (time.time() - request.start_time) * 1000

        logger.error(
            f'Request failed: {exception.__class__.__name__}',
            exc_info=True,
            extra={
                'event': 'http_request_exception',
                'route': request.path,
                'method': request.method,
                'exception_type': exception.__class__.__name__,
                'duration_ms': round(duration_ms, 2),
            }
        )
