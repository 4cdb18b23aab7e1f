from django.core.management.base import BaseCommand

from registration.services.dependencies import get_services


class Command(BaseCommand):
    help = "Finish the undo steps of purchases left in COMPENSATING."

    def handle(self, *args, **options):
        settled = get_services().saga.retry_compensations()
        self.stdout.write(f"Settled {settled} purchase(s)")
