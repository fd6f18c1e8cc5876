"""
Split a tip pool using an Excel/CSV timesheet and print what each partner
gets, in bills and coins.

    python scripts/split_timesheet.py "excel/Week 12.xlsx" 1234.56
"""
import argparse
import sys
from pathlib import Path

# scripts/ sits next to the modules it uses
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import config  # noqa: E402
from distribution import DistributionError, distribute  # noqa: E402
from timesheet import TimesheetParseError, load_timesheet  # noqa: E402


def format_breakdown(entries) -> str:
    return ", ".join(f"{e.quantity} x {e.denomination}" for e in entries) or "-"


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("path", help="timesheet .xlsx or .csv")
    parser.add_argument("amount", help="total tips to distribute, e.g. 1234.56")
    parser.add_argument("--sheet", default=0, help="sheet name or index (Excel only)")
    parser.add_argument("--name-column", default=None)
    parser.add_argument("--hours-column", default=None)
    args = parser.parse_args(argv)

    config.configure_logging()
    sheet = int(args.sheet) if str(args.sheet).isdigit() else args.sheet

    try:
        partners = load_timesheet(args.path, args.name_column, args.hours_column, sheet_name=sheet)
        data = distribute(args.amount, partners, denominations=config.get_denominations())
    except (TimesheetParseError, DistributionError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print(f"Total: {data.total_amount}  Hours: {data.total_hours}  Rate: {data.hourly_rate}/h")
    print()
    for p in data.partner_payouts:
        print(f"{p.name:<24} {p.hours:>7} h  {p.payout:>10}   {format_breakdown(p.bill_breakdown)}")
    print()
    print("Total bills needed:", format_breakdown(data.bills_needed))
    return 0


if __name__ == "__main__":
    sys.exit(main())
