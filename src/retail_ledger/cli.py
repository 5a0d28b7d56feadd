"""Command-line entry points for the retail ledger.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the command objects consumed by the ledger engine,
and printing the results. Keeping the CLI thin means the same parser
configuration can be reused by tests, scripts, or another front-end.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, data_manager, log, reports, sales


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ledger-cli",
        description="Customer ledger tools for the retail back office.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (searched upward from the current directory by default).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands: sales and settlements."""
    specs = {
        "sale": register_sale_command(subparsers),
        "pay": register_pay_command(subparsers),
        "partial-pay": register_partial_pay_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as balances and reports."""
    specs = {
        "ledger": register_ledger_command(subparsers),
        "payments": register_simple_command("payments", "Display the settlement log.", run_payments_report),
        "daily-report": register_simple_command("daily-report", "Display sales per day.", run_daily_report),
        "monthly-report": register_simple_command(
            "monthly-report", "Display sales per month.", run_monthly_report
        ),
        "collections-report": register_simple_command(
            "collections-report", "Display payments collected per day.", run_collections_report
        ),
        "outstanding": register_simple_command(
            "outstanding", "Display the total outstanding balance.", run_outstanding_report
        ),
        "audit": register_simple_command("audit", "Check the ledger for inconsistencies.", run_audit),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Record a sale and post it to the customer's ledger."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument(
            "--line",
            dest="lines",
            action="append",
            required=True,
            metavar="PRODUCT_ID:QUANTITY",
            help="Product and quantity; repeat for several products.",
        )
        parser.add_argument("--paid", action="store_true", help="Settle the customer's balance at checkout.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale)


def register_pay_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``pay``."""
    name = "pay"
    help_text = "Settle a ledger entry in full."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--entry-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_pay)


def register_partial_pay_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``partial-pay``."""
    name = "partial-pay"
    help_text = "Apply a partial payment to a ledger entry."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--entry-id", required=True)
        parser.add_argument("--amount", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_partial_pay)


def register_ledger_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``ledger``."""
    name = "ledger"
    help_text = "Display open customer balances."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", default=None)
        parser.add_argument("--name", dest="name_contains", default=None, help="Case-insensitive name search.")
        parser.add_argument("--all", dest="include_closed", action="store_true", help="Include paid entries.")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_ledger)


def register_simple_command(
    name: str,
    help_text: str,
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
) -> CommandSpec:
    """Build a CommandSpec for a read-only command that takes no options."""

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    context = core_logic.load_runtime_context(config_path)
    core_logic.ensure_schema_version(context)
    return context


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def parse_decimal(raw: str, label: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise core_logic.ValidationError(f"Invalid {label}: {raw!r}") from exc


def parse_line(raw: str) -> core_logic.SaleLine:
    """Turn ``PRODUCT_ID:QUANTITY`` into a sale line.

    A missing quantity means one unit.
    """
    product_id, separator, quantity_raw = raw.rpartition(":")
    if not separator:
        product_id, quantity_raw = raw, "1"
    if not product_id:
        raise core_logic.ValidationError(f"Invalid sale line: {raw!r}")
    return core_logic.SaleLine(product_id=product_id, quantity=parse_decimal(quantity_raw, "quantity"))


def translate_sale(args: argparse.Namespace) -> sales.SaleCommand:
    """Translate CLI args into a sale command object."""
    return sales.SaleCommand(
        customer_id=args.customer_id,
        lines=tuple(parse_line(raw) for raw in args.lines),
    )


def translate_pay(args: argparse.Namespace) -> core_logic.MarkPaidCommand:
    return core_logic.MarkPaidCommand(entry_id=args.entry_id)


def translate_partial_pay(args: argparse.Namespace) -> core_logic.PartialPaymentCommand:
    return core_logic.PartialPaymentCommand(
        entry_id=args.entry_id,
        amount=parse_decimal(args.amount, "amount"),
    )


def translate_ledger_filter(args: argparse.Namespace) -> core_logic.LedgerFilter:
    return core_logic.LedgerFilter(
        customer_id=args.customer_id,
        name_contains=args.name_contains,
        include_closed=args.include_closed,
    )


def _print_entry(context: core_logic.RuntimeContext, entry: data_manager.LedgerRow) -> None:
    print(core_logic.format_entry(entry, context.settings.currency_symbol))


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow, settling at checkout when ``--paid`` is set."""
    command = translate_sale(args)
    if args.paid:
        recorded = sales.record_paid_sale(context, command)
    else:
        recorded = sales.record_sale(context, command)
    currency = context.settings.currency_symbol
    print(f"Sale {recorded.sale.sale_id}: {core_logic.format_money(recorded.sale.sale_total, currency)}")
    _print_entry(context, recorded.entry)
    return 0


def run_pay(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    entry = core_logic.mark_paid(context, translate_pay(args))
    _print_entry(context, entry)
    return 0


def run_partial_pay(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    entry = core_logic.apply_partial_payment(context, translate_partial_pay(args))
    _print_entry(context, entry)
    return 0


def run_ledger(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print matching ledger entries, newest activity first."""
    entries = core_logic.list_ledger(context, translate_ledger_filter(args))
    if not entries:
        print("No ledger entries found.")
        return 0
    for entry in entries:
        _print_entry(context, entry)
        print()
    return 0


def run_payments_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    currency = context.settings.currency_symbol
    for payment in core_logic.list_payments(context):
        print(
            f"{payment.timestamp_iso}  {payment.payment_id}  {payment.entry_id}  {payment.kind:<7}  "
            f"{core_logic.format_money(payment.amount, currency)}  "
            f"balance {core_logic.format_money(payment.balance_after, currency)}"
        )
    return 0


def _print_period_totals(context: core_logic.RuntimeContext, totals: List[reports.PeriodTotal]) -> None:
    currency = context.settings.currency_symbol
    if not totals:
        print("No records found.")
    for total in totals:
        print(f"{total.period}  {total.count:>4}  {core_logic.format_money(total.amount, currency)}")


def run_daily_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    _print_period_totals(context, reports.daily_sales_report(context))
    return 0


def run_monthly_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    _print_period_totals(context, reports.monthly_sales_report(context))
    return 0


def run_collections_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    _print_period_totals(context, reports.collections_report(context))
    return 0


def run_outstanding_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    summary = reports.outstanding_summary(context)
    print(
        f"Open entries: {summary.open_entries} "
        f"(unpaid {summary.unpaid_entries}, partial {summary.partial_entries})"
    )
    print(f"Outstanding:  {core_logic.format_money(summary.total_outstanding, context.settings.currency_symbol)}")
    return 0


def run_audit(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Print audit problems; a dirty ledger exits with status 1."""
    problems = core_logic.audit_ledger(context)
    if not problems:
        print("Ledger is consistent.")
        return 0
    for problem in problems:
        print(problem)
    return 1


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, (core_logic.ValidationError, core_logic.OverpaymentError)):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    if isinstance(error, core_logic.NotFoundError):
        log.error("%s", error)
        return 4
    if isinstance(error, core_logic.ConflictError):
        log.error("%s", error)
        return 5
    log.error("%s", error)
    return 1


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
