# hc_core/inventory/management/commands/send_stock_alerts.py

from django.conf import settings
from django.core.management.base import BaseCommand

from hc_core.inventory.alerts import AlertDedupSet, AlertRunContext, send_stock_alerts


class Command(BaseCommand):
    help = "Email each practitioner a low-stock / expiry summary (at most once per day)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--critical",
            action="store_true",
            help="Use the critical thresholds instead of the standard ones.",
        )

    def handle(self, *args, **options):
        ctx = AlertRunContext(
            dedup=AlertDedupSet.from_deliveries(),
            critical=options["critical"],
            fallback_email=getattr(settings, "INVENTORY_ALERT_EMAIL", ""),
        )
        outcomes = send_stock_alerts(ctx)

        sent = sum(1 for o in outcomes if o.status == "delivered")
        self.stdout.write(self.style.SUCCESS(f"Stock alerts sent: {sent} (owners checked: {len(outcomes)})"))
