from django.core.management.base import BaseCommand, CommandError

from core.models import Tenant
from core.services.document_requirements import check_and_update_missing_documents


class Command(BaseCommand):
    help = "Mark past-due document requirements as overdue and notify their tenants."

    def add_arguments(self, parser):
        parser.add_argument("--tenant", type=int, help="Only check the tenant with this id.")

    def handle(self, *args, **options):
        tenant = None
        if options.get("tenant"):
            tenant = Tenant.objects.filter(id=options["tenant"]).first()
            if tenant is None:
                raise CommandError(f"Tenant {options['tenant']} not found.")

        result = check_and_update_missing_documents(tenant)
        self.stdout.write(
            self.style.SUCCESS(
                f"Checked {result['checked']} requirement(s): "
                f"{result['marked_overdue']} marked overdue, {result['alerts_created']} notification(s) sent."
            )
        )
