from __future__ import annotations

import argparse
import sys
from typing import Dict, List

from .assembler import annualize, format_result
from .config import get_settings
from .engine import compute_payroll
from .errors import is_failure
from .formula import evaluate
from .logging import configure_logging
from .models import Earnings
from .recalc import PAYSLIP_FORMULAS, RecalculationEngine
from .tax_tables import TaxTableRepository, default_repository


def parse_assignment(value: str) -> tuple[str, str]:
    ref, sep, raw = value.partition("=")
    if not sep or not ref.strip():
        raise argparse.ArgumentTypeError(f"Expected REF=VALUE, got {value!r}")
    return ref.strip(), raw.strip()


def parse_cells(assignments: List[tuple[str, str]]) -> Dict[str, float]:
    cells: Dict[str, float] = {}
    for ref, raw in assignments:
        try:
            cells[ref] = float(raw)
        except ValueError:
            raise SystemExit(f"Cell {ref} needs a numeric value, got {raw!r}") from None
    return cells


def repository_from_args(args: argparse.Namespace) -> TaxTableRepository:
    if args.tables_dir:
        return TaxTableRepository(args.tables_dir)
    return default_repository()


def cmd_evaluate(args: argparse.Namespace) -> int:
    outcome = evaluate(args.formula, parse_cells(args.cell))
    if is_failure(outcome):
        print(f"{outcome.kind.value}: {outcome.message}")
        return 1
    print(f"{outcome:.12g}")
    return 0


def cmd_recalc(args: argparse.Namespace) -> int:
    formulas = dict(args.formula) if args.formula else dict(PAYSLIP_FORMULAS)
    engine = RecalculationEngine(formulas, max_passes=args.max_passes)
    result = engine.recalculate(parse_cells(args.cell))
    for target in sorted(result.values):
        failure = result.failures.get(target)
        suffix = f"  ({failure.kind.value})" if failure else ""
        print(f"{target} = {result.values[target]:.2f}{suffix}")
    return 0 if result.ok else 1


def cmd_payroll(args: argparse.Namespace) -> int:
    table = repository_from_args(args).load(args.table or get_settings().tax_table_version)
    earnings = Earnings(
        basic=args.basic,
        allowances=args.allowances,
        overtime=args.overtime,
        bonus=args.bonus,
        commission=args.commission,
    )
    if args.gross is not None:
        earnings = Earnings(basic=args.gross)
    tax_input = earnings.to_tax_input(
        tax_class=args.tax_class,
        has_children=args.children,
        is_over_65=args.over_65,
    )
    result = compute_payroll(tax_input, args.deductions, table=table)
    if is_failure(result):
        print(f"{result.kind.value}: {result.message}")
        return 1
    if args.annual:
        result = annualize(result, table.periods_per_year)
    print(format_result(result))
    return 0


def cmd_tables(args: argparse.Namespace) -> int:
    repo = repository_from_args(args)
    for version in repo.available_versions():
        table = repo.load(version)
        classes = ", ".join(str(c) for c in table.tax_classes)
        print(f"{table.version} effective {table.effective_from.isoformat()} classes: {classes}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Payslip formula and payroll calculator")
    parser.add_argument("--tables-dir", help="Directory of versioned tax table JSON files")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    evaluate_cmd = sub.add_parser("evaluate", help="Evaluate one formula")
    evaluate_cmd.add_argument("formula", help="e.g. '=B10+B11*2'")
    evaluate_cmd.add_argument("--cell", action="append", type=parse_assignment, default=[], help="REF=VALUE")
    evaluate_cmd.set_defaults(func=cmd_evaluate)

    recalc = sub.add_parser("recalc", help="Recalculate declared formulas (default: payslip sheet layout)")
    recalc.add_argument("--formula", action="append", type=parse_assignment, help="TARGET==FORMULA")
    recalc.add_argument("--cell", action="append", type=parse_assignment, default=[], help="REF=VALUE")
    recalc.add_argument("--max-passes", type=int, default=None)
    recalc.set_defaults(func=cmd_recalc)

    payroll = sub.add_parser("payroll", help="Compute a monthly payslip")
    payroll.add_argument("--gross", type=float, help="Monthly gross; overrides the earnings breakdown")
    payroll.add_argument("--basic", type=float, default=0.0)
    payroll.add_argument("--allowances", type=float, default=0.0)
    payroll.add_argument("--overtime", type=float, default=0.0)
    payroll.add_argument("--bonus", type=float, default=0.0)
    payroll.add_argument("--commission", type=float, default=0.0)
    payroll.add_argument("--tax-class", type=int, default=1, help="1 = single, 2 = married")
    payroll.add_argument("--children", action="store_true")
    payroll.add_argument("--over-65", action="store_true")
    payroll.add_argument("--deductions", type=float, default=0.0, help="Other manual deductions")
    payroll.add_argument("--table", help="Tax table version, e.g. lu_2025_v1")
    payroll.add_argument("--annual", action="store_true", help="Show yearly totals")
    payroll.set_defaults(func=cmd_payroll)

    tables = sub.add_parser("tables", help="List available tax table versions")
    tables.set_defaults(func=cmd_tables)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level or get_settings().log_level, json_logs=False)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
