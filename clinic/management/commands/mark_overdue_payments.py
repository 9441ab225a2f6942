from django.core.management.base import BaseCommand

from clinic.services.payments import mark_overdue


class Command(BaseCommand):
    help = "Flag open payments whose due date has passed as overdue."

    def handle(self, *args, **opts):
        n = mark_overdue()
        self.stdout.write(self.style.SUCCESS(f"{n} payments marked overdue."))
