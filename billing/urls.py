from django.urls import path

from .views import SubscriptionView, UsageView

urlpatterns = [
    path("subscription", SubscriptionView.as_view(), name="billing-subscription"),
    path("usage", UsageView.as_view(), name="billing-usage"),
]
