# payout_engine/cli/__main__.py
from __future__ import annotations

import argparse

from payout_engine.cli.seed_demo import seed_demo
from payout_engine.logging_config import configure_logging


def main() -> None:
    p = argparse.ArgumentParser(prog="python -m payout_engine.cli")
    p.add_argument("--admin-email", default="admin@demo.local")
    p.add_argument("--investor-email", default="investor@demo.local")
    p.add_argument("--total-shares", type=int, default=100_000)
    p.add_argument("--investor-shares", type=int, default=80_000)
    p.add_argument("--no-sample-statement", action="store_true")
    args = p.parse_args()

    configure_logging()
    out = seed_demo(
        admin_email=args.admin_email,
        investor_email=args.investor_email,
        total_shares=args.total_shares,
        investor_shares=args.investor_shares,
        create_sample_statement=(not args.no_sample_statement),
    )
    print(
        {
            "ok": True,
            "admin_email": out.admin_email,
            "property_id": out.property_id,
            "statement_id": out.statement_id,
            "distribution_id": out.distribution_id,
        }
    )


if __name__ == "__main__":
    main()
