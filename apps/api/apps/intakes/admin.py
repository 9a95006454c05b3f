from django.contrib import admin
from .models import Intake


@admin.register(Intake)
class IntakeAdmin(admin.ModelAdmin):
    """
    Read-mostly admin for intakes.

    SECURITY: status, payment and decision fields only change through the
    lifecycle API so every change is gated and audited.
    """
    list_display = ['reference_number', 'category', 'status', 'payment_status', 'risk_tier', 'created_at']
    list_filter = ['status', 'payment_status', 'category', 'risk_tier']
    search_fields = ['reference_number', 'id']
    readonly_fields = [
        'id', 'status', 'payment_status', 'clinical_notes', 'decline_reason_code',
        'decline_reason_note', 'refund_reason', 'safety_acknowledged_at', 'safety_acknowledged_by',
        'paid_at', 'reviewed_at', 'reviewed_by', 'approved_at', 'declined_at', 'cancelled_at',
        'completed_at', 'refunded_at', 'created_at', 'updated_at',
    ]

    fieldsets = (
        ('Basic Information', {
            'fields': ('id', 'reference_number', 'category', 'status', 'payment_status')
        }),
        ('Safety', {
            'fields': ('risk_tier', 'requires_live_consult', 'red_flags',
                       'safety_acknowledged_at', 'safety_acknowledged_by')
        }),
        ('Decision', {
            'fields': ('clinical_notes', 'decline_reason_code', 'decline_reason_note', 'refund_reason'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('paid_at', 'reviewed_at', 'reviewed_by', 'approved_at', 'declined_at',
                       'cancelled_at', 'completed_at', 'refunded_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_delete_permission(self, request, obj=None):
        return False
