from django.urls import path

from . import views

urlpatterns = [
    path("vat-analysis/", views.VatAnalysisView.as_view(), name="tax-vat-analysis"),
    path("vat-return/", views.VatReturnView.as_view(), name="tax-vat-return"),
    path("vat-inconsistencies/", views.VatInconsistencyView.as_view(), name="tax-vat-inconsistencies"),
    path("corporate-tax/", views.CorporateTaxView.as_view(), name="tax-corporate"),
    path("monthly-summary/", views.MonthlyTaxSummaryView.as_view(), name="tax-monthly-summary"),
    path("vat-declaration/", views.VatDeclarationView.as_view(), name="tax-vat-declaration"),
]
