from django.urls import path

from . import views

urlpatterns = [
    path("rules/", views.RiskRuleListView.as_view(), name="risk-rule-list"),
    path("rules/<int:pk>/", views.RiskRuleDetailView.as_view(), name="risk-rule-detail"),
    path("documents/<int:document_id>/", views.DocumentRiskView.as_view(), name="risk-document"),
    path("documents/<int:document_id>/trend/", views.DocumentRiskTrendView.as_view(), name="risk-document-trend"),
    path("companies/<int:company_id>/", views.CompanyRiskView.as_view(), name="risk-company"),
    path("companies/<int:company_id>/trend/", views.CompanyRiskTrendView.as_view(), name="risk-company-trend"),
    path("alerts/", views.RiskAlertListView.as_view(), name="risk-alert-list"),
    path("alerts/<int:pk>/", views.RiskAlertDetailView.as_view(), name="risk-alert-detail"),
    path("dashboard/", views.RiskDashboardView.as_view(), name="risk-dashboard"),
]
