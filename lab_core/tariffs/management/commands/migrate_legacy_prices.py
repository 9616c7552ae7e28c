# lab_core/tariffs/management/commands/migrate_legacy_prices.py

from django.core.management.base import BaseCommand, CommandError
from rest_framework.exceptions import APIException

from lab_core.tariffs.services import PriceLedgerService


class Command(BaseCommand):
    help = (
        "Copy legacy exam prices into the price ledger: legacy_price into the base "
        "tariff, legacy_reference_price (or legacy_price x multiplier) into the "
        "reference tariff. Safe to re-run."
    )

    def add_arguments(self, parser):
        parser.add_argument("--base-tariff", dest="base_tariff", required=True)
        parser.add_argument("--reference-tariff", dest="reference_tariff", required=True)
        parser.add_argument(
            "--multiplier",
            dest="multiplier",
            default=None,
            help="Fallback factor for exams without a legacy reference price (default from settings).",
        )

    def handle(self, *args, **options):
        try:
            report = PriceLedgerService.migrate_legacy_prices(
                base_tariff_id=options["base_tariff"],
                reference_tariff_id=options["reference_tariff"],
                multiplier=options.get("multiplier"),
            )
        except APIException as exc:
            raise CommandError(str(exc.detail))

        self.stdout.write(
            self.style.SUCCESS(
                f"Migrated {report.base_prices} base and {report.reference_prices} reference prices; "
                f"skipped {report.skipped} exams without a legacy price."
            )
        )
