from django.core.management.base import BaseCommand

from clinic.services.appointments import send_reminders


class Command(BaseCommand):
    help = "Remind patients of upcoming appointments that were not reminded yet."

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=1, help="days ahead of today (default 1)")

    def handle(self, *args, **opts):
        sent = send_reminders(opts["days"])
        self.stdout.write(self.style.SUCCESS(f"{sent} reminders sent."))
