# lab_core/common/management/commands/ensure_roles.py

from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand
from django.db import transaction

from lab_core.common.permissions import ROLE_ADMIN, ROLE_MEMBER
from lab_core.references.models import Reference
from lab_core.references.selectors import public_reference_name
from lab_core.references.services import ReferenceService

ROLE_GROUPS = [ROLE_ADMIN, ROLE_MEMBER]


class Command(BaseCommand):
    help = "Ensure role groups and the public reference exist (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--public-tariff",
            dest="public_tariff",
            default=None,
            help="Tariff id to use as the public reference's default tariff.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        created = 0
        for name in ROLE_GROUPS:
            _, was_created = Group.objects.get_or_create(name=name)
            created += 1 if was_created else 0

        self.stdout.write(self.style.SUCCESS(f"Roles ensured. Newly created: {created}"))

        name = public_reference_name()
        tariff_id = options.get("public_tariff")
        reference = Reference.objects.filter(name=name).first()

        if reference is None:
            reference = ReferenceService.create_reference(name=name, default_tariff_id=tariff_id)
            self.stdout.write(self.style.SUCCESS(f"Public reference '{name}' created ({reference.id})."))
        elif tariff_id:
            ReferenceService.update_reference(reference_id=reference.id, default_tariff_id=tariff_id, active=True)
            self.stdout.write(self.style.SUCCESS(f"Public reference '{name}' now uses tariff {tariff_id}."))
        else:
            self.stdout.write(f"Public reference '{name}' already exists ({reference.id}).")
