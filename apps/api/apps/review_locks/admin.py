from django.contrib import admin
from .models import ReviewLock


@admin.register(ReviewLock)
class ReviewLockAdmin(admin.ModelAdmin):
    list_display = ['request_id', 'holder_id', 'acquired_at', 'expires_at']
    search_fields = ['request_id', 'holder_id']
    readonly_fields = ['request_id', 'holder_id', 'acquired_at', 'expires_at']
