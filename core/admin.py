from django.contrib import admin

from .models import (
    AuditLog,
    CheckNote,
    ClientCompany,
    Document,
    DocumentRequirement,
    Invoice,
    InvoiceLine,
    Task,
    Tenant,
    TenantMembership,
)


admin.site.site_header = "Mizan – System Admin"
admin.site.site_title = "Mizan System Admin"


def _superuser_only(request):
    return request.user.is_active and request.user.is_superuser


admin.site.has_permission = _superuser_only


class TenantMembershipInline(admin.TabularInline):
    model = TenantMembership
    extra = 0
    raw_id_fields = ("user",)


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "tax_number", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "slug", "tax_number")
    inlines = [TenantMembershipInline]


@admin.register(ClientCompany)
class ClientCompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "tenant", "tax_number", "sector", "is_active")
    list_filter = ("is_active", "tenant")
    search_fields = ("name", "tax_number")


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ("title", "tenant", "assignee", "status", "priority", "due_date")
    list_filter = ("status", "priority")
    search_fields = ("title",)


class InvoiceLineInline(admin.TabularInline):
    model = InvoiceLine
    extra = 0


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("external_id", "client_company", "type", "issue_date", "total_amount", "status")
    list_filter = ("type", "status")
    search_fields = ("external_id", "counterparty_name")
    inlines = [InvoiceLineInline]


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ("original_filename", "client_company", "type", "status", "is_deleted", "created_at")
    list_filter = ("type", "status", "is_deleted")
    search_fields = ("original_filename",)


@admin.register(DocumentRequirement)
class DocumentRequirementAdmin(admin.ModelAdmin):
    list_display = ("client_company", "document_type", "required_by_date", "status")
    list_filter = ("status", "document_type")


@admin.register(CheckNote)
class CheckNoteAdmin(admin.ModelAdmin):
    list_display = ("document_number", "client_company", "type", "direction", "amount", "due_date", "status")
    list_filter = ("type", "direction", "status")
    search_fields = ("document_number", "drawer")


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "tenant", "user", "action", "resource_type", "resource_id")
    list_filter = ("action", "resource_type")
    readonly_fields = [f.name for f in AuditLog._meta.fields]
