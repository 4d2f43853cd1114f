from django.urls import path

from . import views

urlpatterns = [
    path("providers/", views.ProviderListView.as_view(), name="integration-provider-list"),
    path("", views.IntegrationListView.as_view(), name="integration-list"),
    path("<int:pk>/", views.IntegrationDetailView.as_view(), name="integration-detail"),
    path("<int:pk>/test/", views.IntegrationTestView.as_view(), name="integration-test"),
    path("<int:pk>/sync/", views.IntegrationSyncView.as_view(), name="integration-sync"),
]
