from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    CheckNoteViewSet,
    ClientCompanyViewSet,
    DocumentRequirementViewSet,
    DocumentViewSet,
    InvoiceViewSet,
    TaskViewSet,
    TransactionViewSet,
)

router = DefaultRouter()
router.register(r"client-companies", ClientCompanyViewSet, basename="client-companies")
router.register(r"tasks", TaskViewSet, basename="tasks")
router.register(r"invoices", InvoiceViewSet, basename="invoices")
router.register(r"ledger/transactions", TransactionViewSet, basename="ledger-transactions")
router.register(r"documents", DocumentViewSet, basename="documents")
router.register(r"check-notes", CheckNoteViewSet, basename="check-notes")
router.register(r"document-requirements", DocumentRequirementViewSet, basename="document-requirements")

urlpatterns = [
    path("", include(router.urls)),
]
