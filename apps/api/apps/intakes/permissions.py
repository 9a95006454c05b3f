"""
DRF Permission classes for clinical review.

- Doctor: can review, decide and refund intakes
- Admin: same as Doctor
- Superuser: Full access
"""
from rest_framework import permissions

CLINICIAN_GROUPS = ['Doctor', 'Admin']


class IsClinician(permissions.BasePermission):
    """
    Allow access to users in Doctor or Admin groups, or superusers.
    """

    message = 'Clinical review requires the Doctor or Admin role.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        if request.user.is_superuser:
            return True

        return request.user.groups.filter(name__in=CLINICIAN_GROUPS).exists()
