"""Poll the payment provider for one transaction and persist the subscription.

Usage: python -m backend.verify_payment TX_REF [--attempts N] [--interval SECONDS]
"""
import argparse
import asyncio
import sys

from dotenv import load_dotenv

load_dotenv()

# Importing the app registers the database connection with the app context.
import backend.main  # noqa: E402,F401
from backend.app.billing import PaymentVerificationPoller, PollOutcome  # noqa: E402
from backend.app.services.billing import get_billing_service, get_payment_config  # noqa: E402


def parse_args(argv=None):
    config = get_payment_config()
    parser = argparse.ArgumentParser(description="Verify a payment by transaction reference.")
    parser.add_argument("tx_ref", metavar="TX_REF")
    parser.add_argument("--attempts", type=int, default=config.poll_max_attempts)
    parser.add_argument("--interval", type=float, default=config.poll_interval_seconds)
    parser.add_argument("--timeout", type=float, default=None)
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    service = get_billing_service()
    poller = PaymentVerificationPoller(
        service.verify_payment,
        interval_seconds=args.interval,
        max_attempts=args.attempts,
        timeout_seconds=args.timeout,
    )
    result = asyncio.run(poller.run(args.tx_ref))

    if result.outcome == PollOutcome.SUCCEEDED and result.result is not None:
        subscription = result.result.subscription
        state = "created" if result.result.created else "already recorded"
        print(
            f"Verified {subscription.tx_ref}: {subscription.billing_cycle} subscription "
            f"for user {subscription.user_id} until {subscription.expires_at.isoformat()} ({state})."
        )
        return 0

    print(f"Verification {result.outcome.value} after {result.attempts} attempt(s): {result.error or 'no detail'}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
