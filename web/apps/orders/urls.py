from django.urls import path
from .views import (
    ConfirmPaymentView,
    OrderPaymentStatusView,
    OrdersCollectionView,
    OrderStatusView,
    QueuedOrdersView,
    RetrieveOrderView,
)
app_name = "orders"

urlpatterns = [
    path("", OrdersCollectionView.as_view(), name="orders-collection"),  # POST create
    path("queued/", QueuedOrdersView.as_view(), name="orders-queued"),
    path("<uuid:oid>/", RetrieveOrderView.as_view(), name="orders-detail"),
    path("<uuid:oid>/confirm-payment/", ConfirmPaymentView.as_view(), name="orders-confirm-payment"),
    path("<uuid:oid>/payment-status/", OrderPaymentStatusView.as_view(), name="orders-payment-status"),
    path("<uuid:oid>/status/", OrderStatusView.as_view(), name="orders-status"),
]
