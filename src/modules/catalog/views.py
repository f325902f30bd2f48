"""Catalog API views.

Public browsing, rating submission and catalog administration.  Service
errors propagate to the project exception handler.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.accounts.access import AuthorizationGate, is_well_formed_id
from modules.accounts.antiforgery import AntiForgeryTokenRequired
from modules.accounts.exceptions import InvalidResourceId
from modules.accounts.repositories import IdentityDjangoRepository
from modules.audit.sink import get_audit_sink
from modules.catalog.filters import ProductFilter
from modules.catalog.models import Product
from modules.catalog.repositories import ProductDjangoRepository
from modules.catalog.serializers import (
    AdminProductSerializer,
    ProductRatingSerializer,
    ProductSerializer,
)
from modules.catalog.services import CatalogService
from modules.core.pagination import StandardResultsSetPagination
from modules.core.unit_of_work import DjangoUnitOfWork
from modules.orders.repositories import OrderDjangoRepository


def build_catalog_service() -> CatalogService:
    return CatalogService(
        product_repository=ProductDjangoRepository(),
        order_repository=OrderDjangoRepository(),
        unit_of_work=DjangoUnitOfWork(),
        audit_sink=get_audit_sink(),
    )


def _checked_id(pk: str | None) -> str:
    if not is_well_formed_id(pk):
        raise InvalidResourceId("Invalid product id format.")
    return pk


class ProductViewSet(GenericViewSet):
    """Public catalog: ``/api/v1/products/``."""

    filterset_class = ProductFilter
    search_fields = ["name", "brand", "category"]
    ordering_fields = ["name", "price", "rating", "created_at"]
    ordering = ["name", "id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    pagination_class = StandardResultsSetPagination
    serializer_class = ProductSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_catalog_service()

    def get_permissions(self):
        if self.action == "ratings" and self.request.method == "POST":
            return [IsAuthenticated()]
        return [AllowAny()]

    def get_queryset(self):
        return Product.objects.alive()

    def list(self, request: Request) -> Response:
        """GET /api/v1/products/"""
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(ProductSerializer(page, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/products/{pk}/"""
        product = self._service.get_product(_checked_id(pk))
        return Response(ProductSerializer(product).data)

    @action(detail=True, methods=["get", "post"])
    def ratings(self, request: Request, pk: str | None = None) -> Response:
        """GET/POST /api/v1/products/{pk}/ratings/"""
        product_id = _checked_id(pk)
        if request.method == "GET":
            product = self._service.get_product(product_id)
            page = self.paginate_queryset(product.ratings.select_related("identity"))
            return self.get_paginated_response(
                ProductRatingSerializer(page, many=True).data
            )

        identity = AuthorizationGate(IdentityDjangoRepository(), get_audit_sink()).authenticate(
            request.user, endpoint=request.path
        )
        product = self._service.rate_product(identity, product_id, request.data)
        return Response(
            {
                "product_id": product.id.hex,
                "rating": product.rating,
                "total_ratings": product.total_ratings,
                "num_reviews": product.num_reviews,
            },
            status=status.HTTP_201_CREATED,
        )


class AdminProductViewSet(GenericViewSet):
    """Catalog administration: ``/api/v1/admin/products/``."""

    permission_classes = [IsAuthenticated, AntiForgeryTokenRequired]
    filterset_class = ProductFilter
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    ordering_fields = ["name", "price", "stock", "created_at"]
    ordering = ["name", "id"]
    pagination_class = StandardResultsSetPagination
    serializer_class = AdminProductSerializer

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_catalog_service()
        self._gate = AuthorizationGate(IdentityDjangoRepository(), get_audit_sink())

    def get_throttles(self) -> list[BaseThrottle]:
        self.throttle_scope = "admin"
        return super().get_throttles()

    def get_queryset(self):
        return Product.objects.alive()

    def _admin(self, request: Request):
        return self._gate.check_admin(request.user, endpoint=request.path)

    def list(self, request: Request) -> Response:
        """GET /api/v1/admin/products/"""
        self._admin(request)
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(AdminProductSerializer(page, many=True).data)

    def create(self, request: Request) -> Response:
        """POST /api/v1/admin/products/"""
        actor = self._admin(request)
        product = self._service.create_product(actor, request.data)
        return Response(AdminProductSerializer(product).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/admin/products/{pk}/"""
        self._admin(request)
        product = self._service.get_product(_checked_id(pk))
        return Response(AdminProductSerializer(product).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT/PATCH /api/v1/admin/products/{pk}/"""
        actor = self._admin(request)
        product = self._service.update_product(actor, _checked_id(pk), request.data)
        return Response(AdminProductSerializer(product).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/admin/products/{pk}/"""
        actor = self._admin(request)
        product = self._service.delete_product(actor, _checked_id(pk))
        return Response({"product_id": product.id.hex, "deleted_at": product.deleted_at})
