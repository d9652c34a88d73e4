from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from pipeline.consumer import poll_once
from pipeline.queues import get_sqs_client
from pipeline.services import get_engine


class Command(BaseCommand):
    help = "Long-poll the SQS work queue and run pipeline stages."

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="Handle a single batch and exit.")

    def handle(self, *args, **options):
        if not settings.SQS_QUEUE_URL:
            raise CommandError("SQS_QUEUE_URL is not set")

        client = get_sqs_client()
        engine = get_engine()
        self.stdout.write(f"Consuming {settings.SQS_QUEUE_URL}")
        while True:
            n = poll_once(
                client,
                settings.SQS_QUEUE_URL,
                engine,
                wait_seconds=settings.SQS_WAIT_SECONDS,
                visibility_timeout=settings.SQS_VISIBILITY_TIMEOUT,
            )
            if options["once"]:
                self.stdout.write(f"Handled {n} message(s)")
                return
