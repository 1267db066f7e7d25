"""
Rebuild denormalized counters from their detail records.

Usage:
    python manage.py reconcile_counters
    python manage.py reconcile_counters --model post --model poll
    python manage.py reconcile_counters --dry-run
"""

from django.core.management.base import BaseCommand

from social.reconcile import LABELS, reconcile_all


class Command(BaseCommand):
    help = 'Sweep orphaned reactions and recount aggregates (likes, comments, follows, members, poll votes)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--model',
            action='append',
            choices=LABELS,
            help='Only reconcile this kind of parent (repeatable)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report drift without writing'
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        repaired = reconcile_all(options['model'], dry_run=dry_run)

        verb = 'drifted' if dry_run else 'repaired'
        for label, count in repaired.items():
            style = self.style.WARNING if count else self.style.SUCCESS
            self.stdout.write(style(f'{label}: {count} row(s) {verb}'))
