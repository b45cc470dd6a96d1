# accounting/management/commands/seed_farm_chart.py

from django.core.management.base import BaseCommand, CommandError

from accounting.services.account_resolver import seed_farm_chart
from accounting.services.exceptions import AccountResolutionError


class Command(BaseCommand):
    help = "Seed the default farm Chart of Accounts for a tenant (idempotent)"

    def add_arguments(self, parser):
        parser.add_argument("tenant_id", help="Tenant (farm operation) identifier")
        parser.add_argument("--name", default=None, help="Chart display name")

    def handle(self, *args, **options):
        tenant_id = options["tenant_id"]
        self.stdout.write(f"Seeding farm chart for tenant {tenant_id}...")

        try:
            chart, created = seed_farm_chart(tenant_id, name=options["name"])
        except AccountResolutionError as exc:
            raise CommandError(str(exc)) from exc

        total = chart.accounts.count()
        self.stdout.write(
            self.style.SUCCESS(f"{chart.name}: {created} account(s) created, {total} in chart")
        )
