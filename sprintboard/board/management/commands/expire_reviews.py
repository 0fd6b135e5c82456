# ============================================
# board/management/commands/expire_reviews.py
# ============================================
import logging

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from board.services.review import ReviewService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Mark open reviews past their due date as expired (run from cron)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--now",
            help="ISO timestamp to compare due dates against (defaults to the current time)",
        )
        parser.add_argument(
            "--actor",
            default=None,
            help="Actor id recorded on the expiry activity entries",
        )

    def handle(self, *args, **options):
        now = None
        if options["now"]:
            now = parse_datetime(options["now"])
            if now is None:
                raise CommandError(f"Invalid --now value: {options['now']!r}")
            if timezone.is_naive(now):
                now = timezone.make_aware(now)

        expired = ReviewService.expire_overdue(now=now, actor_id=options["actor"])
        logger.info("[board] expire_reviews finished: %d expired", expired)
        self.stdout.write(f"Expired {expired} review(s)")
