"""Parsing of stored job commands into remote procedure calls.

A stored command is one or more ``SELECT function_name(args)`` statements.
Argument binding prefers the explicit signature registry; procedures missing
from it fall back to name-based inference with an ordered list of alternative
parameter names to try when the first guess is rejected.
"""

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

_STATEMENT_SPLIT = re.compile(r";\s*(?=SELECT)", re.IGNORECASE)
_FUNCTION_CALL = re.compile(r"SELECT\s+(\w+)\s*\(([^)]*)\)", re.IGNORECASE)
_INTEGER_ARG = re.compile(r"^(\d+)$")
_SEVEN_DAY_INTERVAL = re.compile(r"INTERVAL\s+'7\s+days?'", re.IGNORECASE)

WEBHOOK_MARKER = "net.http_post"

# Procedure name -> ordered parameter names
PROCEDURE_SIGNATURES: dict[str, tuple[str, ...]] = {
    "cleanup_old_chat_data": ("retention_days",),
    "cleanup_old_debug_logs": ("retention_days",),
    "cleanup_old_job_runs": ("days",),
    "aggregate_daily_analytics": ("target_date",),
    "aggregate_weekly_analytics": ("target_date",),
    "light_refresh_batch": ("p_batch",),
    "light_refresh_batch_with_regression_test": ("p_batch",),
    "refresh_v_products_unified": (),
    "refresh_v_products_unified_with_regression_test": (),
    "cleanup_orphaned_records": (),
    "cleanup_orphaned_records_with_regression_test": (),
    "run_database_maintenance": (),
}

_RETENTION_ALTERNATIVES = ("retention_days", "days", "p_days", "p_value", "value")
_CLEANUP_ALTERNATIVES = ("days", "retention_days", "p_days", "p_value", "value")
_NUMERIC_ALTERNATIVES = ("p_value", "p_days", "days", "value", "batch", "p_batch")
_DATE_ALTERNATIVES = ("target_date", "p_date", "date_param", "date")


@dataclass
class ProcedureCall:
    """One parsed statement, ready to invoke."""

    function: str
    raw_args: str
    params: dict[str, Any] = field(default_factory=dict)
    # Parameter names to retry with, in order, if ``params`` is rejected
    alternatives: tuple[str, ...] = ()
    registered: bool = False

    @property
    def argument_value(self) -> Any:
        return next(iter(self.params.values()), None)


@dataclass
class UnparsedStatement:
    """A statement that is not a plain function call."""

    text: str

    @property
    def is_webhook(self) -> bool:
        return WEBHOOK_MARKER in self.text


def split_statements(command: str) -> list[str]:
    """Split on ``;`` followed by another SELECT, dropping blanks."""
    if not command:
        return []
    parts = _STATEMENT_SPLIT.split(command.strip())
    return [p.strip() for p in parts if p.strip()]


def _resolve_date(raw_args: str, today: date) -> str:
    if _SEVEN_DAY_INTERVAL.search(raw_args):
        return (today - timedelta(days=7)).isoformat()
    return today.isoformat()


def _numeric_guess(function: str) -> tuple[str, tuple[str, ...]]:
    name = function.lower()
    if "cleanup" in name and ("old_chat" in name or "old_debug" in name):
        return "retention_days", _RETENTION_ALTERNATIVES
    if "cleanup" in name:
        return "days", _CLEANUP_ALTERNATIVES
    return "days", _NUMERIC_ALTERNATIVES


def _date_guess(function: str) -> tuple[str, tuple[str, ...]]:
    if "analytics" in function.lower():
        return "target_date", _DATE_ALTERNATIVES
    return "p_date", _DATE_ALTERNATIVES


def infer_call(function: str, raw_args: str, today: date | None = None) -> ProcedureCall:
    """Bind a statement's raw argument text to named parameters."""
    today = today or date.today()
    raw_args = raw_args.strip()

    value: Any = None
    if _INTEGER_ARG.match(raw_args):
        value = int(raw_args)
    elif "CURRENT_DATE" in raw_args.upper():
        value = _resolve_date(raw_args, today)

    if value is None:
        return ProcedureCall(function=function, raw_args=raw_args, registered=function in PROCEDURE_SIGNATURES)

    signature = PROCEDURE_SIGNATURES.get(function)
    if signature:
        return ProcedureCall(
            function=function,
            raw_args=raw_args,
            params={signature[0]: value},
            registered=True,
        )

    if isinstance(value, int):
        primary, alternatives = _numeric_guess(function)
    else:
        primary, alternatives = _date_guess(function)
    return ProcedureCall(
        function=function,
        raw_args=raw_args,
        params={primary: value},
        alternatives=alternatives,
    )


def parse_statement(statement: str, today: date | None = None) -> ProcedureCall | UnparsedStatement:
    match = _FUNCTION_CALL.search(statement)
    if not match:
        return UnparsedStatement(text=statement)
    return infer_call(match.group(1), match.group(2), today=today)


def parse_command(command: str, today: date | None = None) -> list[ProcedureCall | UnparsedStatement]:
    """Parse a stored command into calls, in textual order."""
    return [parse_statement(s, today=today) for s in split_statements(command)]
