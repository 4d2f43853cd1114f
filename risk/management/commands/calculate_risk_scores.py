from django.core.management.base import BaseCommand, CommandError

from core.models import Tenant
from risk.processor import calculate_tenant_risk


class Command(BaseCommand):
    help = "Score unscored documents and client companies for one or all active tenants."

    def add_arguments(self, parser):
        parser.add_argument("--tenant", type=int, help="Only process the tenant with this id.")

    def handle(self, *args, **options):
        tenants = Tenant.objects.filter(is_active=True).order_by("id")
        if options.get("tenant"):
            tenants = tenants.filter(id=options["tenant"])
            if not tenants.exists():
                raise CommandError(f"Tenant {options['tenant']} not found or inactive.")

        totals = {"companies_processed": 0, "documents_processed": 0, "errors": 0}
        for tenant in tenants:
            result = calculate_tenant_risk(tenant)
            for key in totals:
                totals[key] += result[key]
            self.stdout.write(
                f"{tenant.name}: {result['companies_processed']} companies, "
                f"{result['documents_processed']} documents, {result['errors']} errors"
            )

        style = self.style.WARNING if totals["errors"] else self.style.SUCCESS
        self.stdout.write(
            style(
                f"Done: {totals['companies_processed']} companies, "
                f"{totals['documents_processed']} documents, {totals['errors']} errors."
            )
        )
