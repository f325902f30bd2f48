"""Order API views.

Customer routes (checkout, own orders, payment, cancellation) and admin
routes (all orders, delivery).  Every route resolves the caller through
``AuthorizationGate``; service errors propagate to the project exception
handler.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.accounts.access import AuthorizationGate, is_well_formed_id
from modules.accounts.antiforgery import AntiForgeryTokenRequired
from modules.accounts.exceptions import InvalidResourceId
from modules.accounts.repositories import IdentityDjangoRepository
from modules.audit.sink import get_audit_sink
from modules.catalog.repositories import ProductDjangoRepository
from modules.core.pagination import StandardResultsSetPagination
from modules.core.unit_of_work import DjangoUnitOfWork
from modules.orders.filters import OrderFilter
from modules.orders.fulfillment import FulfillmentWorker
from modules.orders.models import Order
from modules.orders.payments import PaymentSettlementWorker
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.serializers import (
    AdminOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
)
from modules.orders.services import OrderTransactionProcessor


class OrderViewSet(GenericViewSet):
    """Customer order routes: ``/api/v1/orders/``."""

    permission_classes = [IsAuthenticated]
    pagination_class = StandardResultsSetPagination
    ordering = ["-created_at", "-id"]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        audit = get_audit_sink()
        uow = DjangoUnitOfWork()
        self._orders = OrderDjangoRepository()
        self._gate = AuthorizationGate(IdentityDjangoRepository(), audit)
        self._processor = OrderTransactionProcessor(
            order_repository=self._orders,
            product_repository=ProductDjangoRepository(),
            unit_of_work=uow,
            audit_sink=audit,
        )
        self._payments = PaymentSettlementWorker(self._orders, uow, audit)

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttle scope per action."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        elif self.action == "pay":
            throttle_scope = "payment"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        return Order.objects.none()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        identity = self._gate.authenticate(request.user, endpoint=request.path)
        placed = self._processor.place_order(identity, request.data)
        return Response(
            {"order_id": placed.order_id.hex, "total_price": str(placed.total_price)},
            status=status.HTTP_201_CREATED,
        )

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/ (the caller's own orders)"""
        identity = self._gate.authenticate(request.user, endpoint=request.path)
        queryset = Order.objects.filter(owner_id=identity.pk).order_by(*self.ordering)
        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(OrderListSerializer(page, many=True).data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/

        Owners see their order; admins see any order with the owner,
        payment result and delivery detail.
        """
        ownership = self._gate.check_ownership(
            request.user, self._orders, pk, owner_field="owner_id", endpoint=request.path
        )
        serializer_class = AdminOrderSerializer if ownership.is_admin_access else OrderSerializer
        return Response(serializer_class(ownership.resource).data)

    # ------------------------------------------------------------------
    # Payment / cancellation
    # ------------------------------------------------------------------

    @action(detail=True, methods=["put"])
    def pay(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/orders/{pk}/pay/"""
        ownership = self._gate.check_ownership(
            request.user,
            self._orders,
            pk,
            owner_field="owner_id",
            allow_admin_override=False,
            endpoint=request.path,
        )
        receipt = self._payments.settle(ownership.identity, ownership.resource.pk, request.data)
        return Response(
            {
                "order_id": receipt.order_id.hex,
                "total_paid": str(receipt.total_paid),
                "payment_id": receipt.payment_id,
            }
        )

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/

        Cancels a pending order and returns its stock.
        """
        ownership = self._gate.check_ownership(
            request.user,
            self._orders,
            pk,
            owner_field="owner_id",
            allow_admin_override=False,
            endpoint=request.path,
        )
        order = self._processor.cancel_order(ownership.identity, ownership.resource.pk)
        return Response(OrderSerializer(self._orders.get_by_id(order.pk)).data)


class AdminOrderViewSet(GenericViewSet):
    """Admin order routes: ``/api/v1/admin/orders/``."""

    permission_classes = [IsAuthenticated, AntiForgeryTokenRequired]
    filterset_class = OrderFilter
    search_fields = ["order_number", "owner__email", "owner__name"]
    ordering_fields = ["created_at", "total_price", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    pagination_class = StandardResultsSetPagination

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        audit = get_audit_sink()
        self._gate = AuthorizationGate(IdentityDjangoRepository(), audit)
        self._fulfillment = FulfillmentWorker(OrderDjangoRepository(), DjangoUnitOfWork(), audit)

    def get_throttles(self) -> list[BaseThrottle]:
        self.throttle_scope = "admin"
        return super().get_throttles()

    def get_queryset(self):
        return Order.objects.select_related("owner")

    def list(self, request: Request) -> Response:
        """GET /api/v1/admin/orders/

        Filtering (status, owner, date range, total range) is handled by
        ``OrderFilter``; ordering by ``OrderingFilter``.  Results are paginated.
        """
        self._gate.check_admin(request.user, endpoint=request.path)
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(OrderListSerializer(page, many=True).data)

    @action(detail=True, methods=["put"])
    def deliver(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/admin/orders/{pk}/deliver/"""
        admin = self._gate.check_admin(request.user, endpoint=request.path)
        if not is_well_formed_id(pk):
            raise InvalidResourceId("Invalid order id format.")
        receipt = self._fulfillment.deliver(admin, pk, request.data)
        return Response(
            {
                "order_id": receipt.order_id.hex,
                "delivered_at": receipt.delivered_at,
            }
        )

    @action(detail=True, methods=["put"])
    def expedite(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/admin/orders/{pk}/expedite/"""
        admin = self._gate.check_admin(request.user, endpoint=request.path)
        if not is_well_formed_id(pk):
            raise InvalidResourceId("Invalid order id format.")
        order = self._fulfillment.expedite(admin, pk)
        return Response(AdminOrderSerializer(order).data)
