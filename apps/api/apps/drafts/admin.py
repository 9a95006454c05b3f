from django.contrib import admin
from .models import Draft


@admin.register(Draft)
class DraftAdmin(admin.ModelAdmin):
    list_display = ['intake', 'type', 'version', 'status', 'approved_at', 'rejected_at', 'created_at']
    list_filter = ['type', 'status']
    search_fields = ['intake__reference_number', 'intake__id']
    readonly_fields = ['id', 'intake', 'type', 'version', 'model', 'source_answers_fingerprint',
                       'approved_at', 'approved_by', 'rejected_at', 'rejected_by', 'rejection_reason',
                       'created_at', 'updated_at']

    def has_change_permission(self, request, obj=None):
        """Prevent editing approved or rejected drafts."""
        if obj and obj.is_finalized:
            return False
        return super().has_change_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        return False
