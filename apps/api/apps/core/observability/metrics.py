"""
Metrics instrumentation (Prometheus).
"""
import time
from functools import wraps

from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry for the clinical request coordinator.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        self._setup_metrics()

    def _create_counter(self, name, description, labels=None):
        return Counter(name, description, labels or [])

    def _create_histogram(self, name, description, labels=None, buckets=None):
        if buckets:
            return Histogram(name, description, labels or [], buckets=buckets)
        return Histogram(name, description, labels or [])

    def _setup_metrics(self):
        """Setup all application metrics."""

        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.exceptions_total = self._create_counter(
            'exceptions_total',
            'Total exceptions',
            ['exception_type', 'location']
        )

        # ===================================================================
        # Intake Lifecycle Metrics
        # ===================================================================
        self.intake_transitions_total = self._create_counter(
            'intake_transitions_total',
            'Intake status transitions',
            ['from_status', 'to_status', 'result']
        )

        self.intake_policy_gate_blocked_total = self._create_counter(
            'intake_policy_gate_blocked_total',
            'Transitions refused by a clinical policy gate',
            ['gate']  # insufficient_documentation, safety_acknowledgment_required, payment_required
        )

        self.intake_refunds_total = self._create_counter(
            'intake_refunds_total',
            'Intake refunds',
            ['result']  # success, duplicate
        )

        self.intake_transition_duration_seconds = self._create_histogram(
            'intake_transition_duration_seconds',
            'Duration of an intake transition including audit write',
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
        )

        # ===================================================================
        # Review Lock Metrics
        # ===================================================================
        self.review_lock_acquisitions_total = self._create_counter(
            'review_lock_acquisitions_total',
            'Review lock acquisition attempts',
            ['result']  # acquired, refreshed, contended
        )

        # ===================================================================
        # Draft Metrics
        # ===================================================================
        self.draft_decisions_total = self._create_counter(
            'draft_decisions_total',
            'Draft approvals and rejections',
            ['type', 'decision']
        )

        self.draft_diff_fallback_total = self._create_counter(
            'draft_diff_fallback_total',
            'Diffs skipped because input exceeded the size ceiling'
        )

        # ===================================================================
        # Audit Metrics
        # ===================================================================
        self.audit_entries_created_total = self._create_counter(
            'audit_entries_created_total',
            'Audit trail entries created',
            ['action_type']
        )

        self.audit_redacted_values_total = self._create_counter(
            'audit_redacted_values_total',
            'Values redacted before reaching the audit trail'
        )

    def track_duration(self, histogram_metric):
        """
        Decorator to track function duration.

        Usage:
            @metrics.track_duration(metrics.intake_transition_duration_seconds)
            def transition(...):
                ...
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    histogram_metric.observe(time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics = MetricsRegistry()
