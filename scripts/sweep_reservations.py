# scripts/sweep_reservations.py
from apps.context import build_context
from apps.settings import settings
from core.utils.commands.command import Command


class SweepReservationsCommand(Command):
    help = "Invalidate reservations that were not started within the grace period"

    def add_arguments(self, parser):
        parser.add_argument(
            "--grace-minutes",
            type=int,
            default=None,
            help="Override the configured grace period (minutes)",
        )

    async def handle(self, **options):
        from apps.api.reservation.sweeper import GracePeriodSweeper

        context = build_context(settings)
        try:
            sweeper = GracePeriodSweeper(context, grace_minutes=options.get("grace_minutes"))
            report = await sweeper.run_once()
        finally:
            await context.db.dispose()

        print(
            f"Checked {report.candidates} reservations older than {report.cutoff.isoformat()}: "
            f"{len(report.succeeded)} invalidated, {len(report.skipped)} skipped, "
            f"{len(report.errored)} errored"
        )
        return report
