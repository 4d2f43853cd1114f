from django.urls import path

from . import views

urlpatterns = [
    path("consents/", views.ConsentView.as_view(), name="kvkk-consents"),
    path("access-requests/", views.AccessRequestView.as_view(), name="kvkk-access-requests"),
    path("deletion-requests/", views.DeletionRequestView.as_view(), name="kvkk-deletion-requests"),
    path("breaches/", views.BreachView.as_view(), name="kvkk-breaches"),
    path("retention-check/", views.RetentionCheckView.as_view(), name="kvkk-retention-check"),
    path("audit-log/", views.DataAccessAuditLogView.as_view(), name="kvkk-audit-log"),
]
