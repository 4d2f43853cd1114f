from django.core.management.base import BaseCommand

from risk.bootstrap import seed_default_rules
from risk.rules import invalidate_all


class Command(BaseCommand):
    help = "Create the built-in global risk rules (idempotent)."

    def handle(self, *args, **options):
        created = seed_default_rules()
        invalidate_all()
        self.stdout.write(self.style.SUCCESS(f"Seeded {created} new global risk rule(s)."))
