from django.urls import path
from .views import ListingsView, PurchaseView, SummaryView, TransactionsView

urlpatterns = [
    path("listings/", ListingsView.as_view(), name="listings"),
    path("listings/<str:listing_id>/purchase/", PurchaseView.as_view(), name="purchase-energy"),
    path("transactions/", TransactionsView.as_view(), name="transactions"),
    path("summary/", SummaryView.as_view(), name="trading-summary"),
]
