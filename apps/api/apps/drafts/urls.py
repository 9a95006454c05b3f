"""Draft URLs."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from .views import DraftViewSet

router = DefaultRouter()
router.register(r'drafts', DraftViewSet, basename='draft')

urlpatterns = [
    path('', include(router.urls)),
]
