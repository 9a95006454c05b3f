from django.contrib import admin
from .models import AuditEntry


@admin.register(AuditEntry)
class AuditEntryAdmin(admin.ModelAdmin):
    list_display = ['action_type', 'request_id', 'actor_id', 'created_at']
    list_filter = ['action_type', 'created_at']
    search_fields = ['request_id', 'actor_id']
    readonly_fields = ['id', 'request_id', 'actor_id', 'action_type', 'previous_state',
                       'new_state', 'metadata', 'created_at']

    def has_add_permission(self, request):
        # Entries are only written by record_mutation()
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
