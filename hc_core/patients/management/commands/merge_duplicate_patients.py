# hc_core/patients/management/commands/merge_duplicate_patients.py

from django.core.management.base import BaseCommand, CommandError

from hc_core.common.errors import MergeAlreadyRunning
from hc_core.patients.identity import choose_survivor, resolve_duplicates


class Command(BaseCommand):
    help = "Merge patient records that share a name and mobile number."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only list duplicate groups and their survivors; change nothing.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]

        try:
            report = resolve_duplicates(dry_run=dry_run)
        except MergeAlreadyRunning as exc:
            raise CommandError(str(exc.detail))

        for group in report.groups:
            survivor = choose_survivor(group)
            codes = ", ".join(p.patient_code for p in group)
            self.stdout.write(f"{codes} -> {survivor.patient_code}")

        if dry_run:
            self.stdout.write(self.style.WARNING(f"Dry run. Duplicate groups: {len(report.groups)}"))
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f"Merged {report.merged_count} record(s) across {len(report.groups)} group(s)."
                )
            )
