from django.core.management.base import BaseCommand, CommandError

from order_fulfillment.exceptions import BusinessException
from shipping.services import ShipmentReconciler


class Command(BaseCommand):
    help = "Polls carriers for open API shipments and updates tracking numbers and statuses."

    def add_arguments(self, parser):
        parser.add_argument(
            "--shipment",
            type=str,
            help="Reconcile a single shipment by shipment number.",
        )
        parser.add_argument("--limit", type=int, default=100, help="Maximum number of shipments to poll.")

    def handle(self, *args, **options):
        shipment_number = options["shipment"]

        if shipment_number:
            try:
                outcome = ShipmentReconciler.reconcile_tracking(shipment_number)
            except BusinessException as exc:
                raise CommandError(f"{exc.code}: {exc.message}")
            self.stdout.write(self.style.SUCCESS(
                f"{shipment_number}: {outcome['status']}, "
                f"tracking {outcome['tracking_number'] or 'not yet assigned'}"
                f"{' (updated)' if outcome['changed'] else ''}"
            ))
            return

        summary = ShipmentReconciler.reconcile_pending(limit=options["limit"])
        style = self.style.SUCCESS if not summary["failed"] else self.style.WARNING
        self.stdout.write(style(
            f"Checked {summary['checked']} shipments: {summary['updated']} updated, {summary['failed']} failed"
        ))
