"""Fetch and print the reconciliation report for gateway payments.

Use after a `reconciliation_required` log line: a payment the gateway
captured but the order store never recorded shows `"reconciled": false`.
Exits non-zero when any requested payment is unreconciled.
"""

import argparse
import json
import os
import sys

import httpx


def main() -> int:
    """CLI entrypoint for payment reconciliation checks."""

    parser = argparse.ArgumentParser(description="Compare gateway payments with recorded orders.")
    parser.add_argument("payment_ids", nargs="+", help="razorpay payment ids (pay_...)")
    parser.add_argument("--api-url", default="http://localhost:5000")
    parser.add_argument("--api-key", default=os.getenv("API_KEY", ""))
    args = parser.parse_args()

    unreconciled = 0
    with httpx.Client(base_url=args.api_url, headers={"x-api-key": args.api_key}, timeout=10.0) as client:
        for payment_id in args.payment_ids:
            resp = client.get(f"/api/reconciliation/{payment_id}")
            resp.raise_for_status()
            report = resp.json()
            if not report["reconciled"]:
                unreconciled += 1
            print(json.dumps(report, indent=2))
    return 1 if unreconciled else 0


if __name__ == "__main__":
    sys.exit(main())
