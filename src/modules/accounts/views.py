"""Accounts API views.

Registration, the caller's own profile, anti-forgery token issuance and
identity administration.  Service errors propagate to the project
exception handler; views never build error responses themselves.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.accounts.access import AuthorizationGate
from modules.accounts.antiforgery import AntiForgeryTokenRequired, AntiForgeryTokenService
from modules.accounts.dtos import (
    AdminUpdateIdentityDTO,
    RegisterIdentityDTO,
    UpdateProfileDTO,
)
from modules.accounts.exceptions import IdentityNotFound
from modules.accounts.hierarchy import RoleHierarchyEnforcer
from modules.accounts.models import Identity
from modules.accounts.repositories import IdentityDjangoRepository
from modules.accounts.serializers import AdminIdentitySerializer, IdentitySerializer
from modules.accounts.services import IdentityService
from modules.accounts.tokens import issue_session_tokens
from modules.audit.sink import get_audit_sink
from modules.core.dtos import parse_dto
from modules.core.pagination import StandardResultsSetPagination
from modules.core.unit_of_work import DjangoUnitOfWork
from modules.orders.repositories import OrderDjangoRepository


def build_identity_service() -> IdentityService:
    identities = IdentityDjangoRepository()
    uow = DjangoUnitOfWork()
    audit = get_audit_sink()
    hierarchy = RoleHierarchyEnforcer(
        identity_store=identities,
        order_repository=OrderDjangoRepository(),
        unit_of_work=uow,
        audit_sink=audit,
    )
    return IdentityService(identities, uow, audit, hierarchy=hierarchy)


class RegisterView(APIView):
    """POST /api/v1/auth/register/"""

    permission_classes = [AllowAny]
    authentication_classes: list = []
    throttle_scope = "auth"

    def post(self, request: Request) -> Response:
        dto = parse_dto(RegisterIdentityDTO, request.data)
        identity = build_identity_service().register(dto)
        body = dict(IdentitySerializer(identity).data)
        body["tokens"] = issue_session_tokens(identity)
        return Response(body, status=status.HTTP_201_CREATED)


class ProfileView(APIView):
    """GET/PUT /api/v1/me"""

    permission_classes = [IsAuthenticated]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._gate = AuthorizationGate(IdentityDjangoRepository(), get_audit_sink())

    def get(self, request: Request) -> Response:
        identity = self._gate.authenticate(request.user, endpoint=request.path)
        return Response(IdentitySerializer(identity).data)

    def put(self, request: Request) -> Response:
        identity = self._gate.authenticate(request.user, endpoint=request.path)
        dto = parse_dto(UpdateProfileDTO, request.data)
        identity = build_identity_service().update_profile(identity, dto)
        return Response(IdentitySerializer(identity).data)


class AntiForgeryTokenView(APIView):
    """GET /api/v1/auth/csrf-token/"""

    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        audit = get_audit_sink()
        AuthorizationGate(IdentityDjangoRepository(), audit).authenticate(
            request.user, endpoint=request.path
        )
        service = AntiForgeryTokenService(audit)
        return Response(
            {"csrf_token": service.issue(request.user), "expires_in": service.max_age}
        )


class AdminIdentityViewSet(GenericViewSet):
    """Identity administration: ``/api/v1/admin/users/``.

    Listing and reading need the admin role; role changes and deleting
    administrators additionally need super admin (enforced by
    ``RoleHierarchyEnforcer``).  Mutations require the anti-forgery token.
    """

    permission_classes = [IsAuthenticated, AntiForgeryTokenRequired]
    pagination_class = StandardResultsSetPagination
    queryset = Identity.objects.none()

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._identities = IdentityDjangoRepository()
        self._gate = AuthorizationGate(self._identities, get_audit_sink())
        self._service = build_identity_service()

    def get_throttles(self) -> list[BaseThrottle]:
        self.throttle_scope = "admin"
        return super().get_throttles()

    def _admin(self, request: Request) -> Identity:
        return self._gate.check_admin(request.user, endpoint=request.path)

    def list(self, request: Request) -> Response:
        """GET /api/v1/admin/users/"""
        self._admin(request)
        identities = self._service.list_identities()
        page = self.paginate_queryset(identities)
        return self.get_paginated_response(AdminIdentitySerializer(page, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/admin/users/{pk}/"""
        self._admin(request)
        ownership = self._gate.check_ownership(
            request.user, self._identities, pk, owner_field="id", endpoint=request.path
        )
        if ownership.resource.is_deleted:
            raise IdentityNotFound()
        return Response(AdminIdentitySerializer(ownership.resource).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT/PATCH /api/v1/admin/users/{pk}/"""
        actor = self._admin(request)
        self._gate.check_ownership(
            request.user, self._identities, pk, owner_field="id", endpoint=request.path
        )
        dto = parse_dto(AdminUpdateIdentityDTO, request.data)
        identity = self._service.admin_update(actor, pk, dto)
        return Response(AdminIdentitySerializer(identity).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/admin/users/{pk}/"""
        actor = self._admin(request)
        self._gate.check_ownership(
            request.user, self._identities, pk, owner_field="id", endpoint=request.path
        )
        identity = self._service.admin_delete(actor, pk)
        return Response(
            {"id": identity.id.hex, "deleted_at": identity.deleted_at},
            status=status.HTTP_200_OK,
        )
