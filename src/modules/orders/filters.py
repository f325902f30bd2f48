import django_filters

from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    owner = django_filters.UUIDFilter(field_name="owner_id")
    is_paid = django_filters.BooleanFilter(field_name="is_paid")
    is_delivered = django_filters.BooleanFilter(field_name="is_delivered")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(field_name="total_price", lookup_expr="gte")
    max_total = django_filters.NumberFilter(field_name="total_price", lookup_expr="lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "owner",
            "is_paid",
            "is_delivered",
            "start_date",
            "end_date",
            "min_total",
            "max_total",
        ]
