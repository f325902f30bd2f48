"""Accounts URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import SimpleRouter
from rest_framework_simplejwt.views import TokenRefreshView

from modules.accounts.tokens import SessionTokenObtainPairView
from modules.accounts.views import (
    AdminIdentityViewSet,
    AntiForgeryTokenView,
    ProfileView,
    RegisterView,
)

router = SimpleRouter(trailing_slash=True)
router.register("admin/users", AdminIdentityViewSet, basename="admin-user")

urlpatterns = [
    path("auth/register/", RegisterView.as_view(), name="auth_register"),
    path("auth/token/", SessionTokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("auth/csrf-token/", AntiForgeryTokenView.as_view(), name="auth_csrf_token"),
    path("me", ProfileView.as_view(), name="profile"),
] + router.urls
