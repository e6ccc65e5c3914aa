import click

from gearshare.services.escrow_service import EscrowService
from gearshare.services.payment_gateway import get_gateway
from gearshare.services.payment_service import PaymentService


def register_cli(app):
    @app.cli.command("release-deposits")
    @click.option("--limit", default=50, show_default=True, help="Maximum payments to settle in one run.")
    def release_deposits_command(limit):
        """Release escrow and deposits whose claim window has passed."""
        summary = EscrowService.release_due(get_gateway(), limit=limit)
        click.echo(
            f"Scanned {summary['scanned']}, released {summary['released']}, "
            f"skipped {summary['skipped']}, failed {len(summary['errors'])}."
        )
        for error in summary["errors"]:
            click.echo(f"  payment {error['payment_id']} (booking {error['booking_id']}): {error['error']}", err=True)

    @app.cli.command("reconcile-payments")
    @click.option("--limit", default=50, show_default=True, help="Maximum open intents to check.")
    def reconcile_payments_command(limit):
        """Record captures the webhook never delivered."""
        summary = PaymentService.reconcile_pending(limit=limit)
        click.echo(f"Checked {summary['scanned']} open payments, captured {summary['captured']}.")
