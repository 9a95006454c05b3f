"""
Health check endpoints.

/healthz  - process is up (no dependency checks)
/readyz   - database reachable and lifecycle tables migrated
"""
import logging

from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)

# Tables every lifecycle mutation writes to
REQUIRED_TABLES = ('intakes', 'audit_entries', 'review_locks', 'document_drafts')


class HealthzView(View):

    def get(self, request):
        health_data = {
            'status': 'ok',
            'version': getattr(settings, 'VERSION', 'unknown'),
        }
        commit_hash = getattr(settings, 'COMMIT_HASH', None)
        if commit_hash:
            health_data['commit'] = commit_hash
        return JsonResponse(health_data, status=200)


class ReadyzView(View):
    """
    Readiness check endpoint.

    Returns 503 when the database is unreachable or a lifecycle table is
    missing (migrations not applied).
    """

    def get(self, request):
        checks = {
            'database': self._check_database(),
        }
        checks['schema'] = checks['database'] and self._check_schema()

        ready = all(checks.values())
        return JsonResponse(
            {'status': 'ready' if ready else 'not_ready', 'checks': checks},
            status=200 if ready else 503,
        )

    def _check_database(self):
        try:
            with connection.cursor() as cursor:
                cursor.execute('SELECT 1')
            return True
        except DatabaseError as e:
            logger.error(
                'Database health check failed',
                extra={'event': 'health_check_failed', 'check': 'database', 'error_type': e.__class__.__name__}
            )
            return False

    def _check_schema(self):
        existing = set(connection.introspection.table_names())
        missing = [table for table in REQUIRED_TABLES if table not in existing]
        if missing:
            logger.error(
                'Schema health check failed',
                extra={'event': 'health_check_failed', 'check': 'schema', 'missing_count': len(missing)}
            )
        return not missing
