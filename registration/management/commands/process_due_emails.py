from django.core.management.base import BaseCommand

from registration.services.dependencies import get_services


class Command(BaseCommand):
    help = "Send every follow-up email that is due. Run from a timer (cron, systemd)."

    def handle(self, *args, **options):
        sent = get_services().notifications.process_due_emails()
        self.stdout.write(f"Sent {sent} follow-up email(s)")
