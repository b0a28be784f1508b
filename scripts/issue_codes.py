# scripts/issue_codes.py

import argparse
import csv
import logging
import sys
import os
from datetime import datetime

# Хак для импорта наших модулей из родительской директории
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app.dependencies import get_db_context
from app.services import redemption as redemption_service

# Настройка логирования
logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Выпуск пачки кодов активации. Открытые коды пишутся в CSV один раз.")
    parser.add_argument("--output", required=True, help="CSV-файл для открытых кодов")
    parser.add_argument("--quantity", type=int, default=1)
    parser.add_argument("--expires-at", type=datetime.fromisoformat, default=None)
    parser.add_argument("--created-by", default="cli")

    sub = parser.add_subparsers(dest="kind", required=True)
    credits = sub.add_parser("credits")
    credits.add_argument("--credits", type=int, required=True)
    credits.add_argument("--max-uses", type=int, default=1)
    credits.add_argument("--validity-days", type=int, default=None)

    membership = sub.add_parser("membership")
    membership.add_argument("--plan-id", required=True)
    membership.add_argument("--membership-days", type=int, required=True)
    return parser.parse_args(argv)


def issue(args):
    with get_db_context() as db:
        if args.kind == "credits":
            result = redemption_service.issue_credit_codes(
                db, credits=args.credits, quantity=args.quantity, max_uses=args.max_uses,
                validity_days=args.validity_days, expires_at=args.expires_at, created_by=args.created_by,
            )
        else:
            result = redemption_service.issue_membership_codes(
                db, plan_id=args.plan_id, quantity=args.quantity, membership_days=args.membership_days,
                expires_at=args.expires_at, created_by=args.created_by,
            )

    if not result.is_ok:
        logger.error(f"Codes were not issued: {result.kind.value} {result.detail}")
        return 1

    issued = result.value
    with open(args.output, mode='w', encoding='utf-8', newline='') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(["code", "type", "credits", "plan_id"])
        for code in issued.codes:
            writer.writerow([code, issued.type, issued.credits, issued.plan_id or ""])
    logger.info(f"Issued {len(issued.codes)} {issued.type} code(s). Written to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(issue(parse_args()))
