"""Command dispatch: turns a job into remote procedure calls.

Three modes, chosen by the job's descriptor:

* ``background`` - one wrapped procedure handed to the background supervisor;
  the caller gets an immediate success and completion is observed through
  the heartbeat and audit stores.
* ``wrapped`` - one wrapped procedure, awaited.
* ``parsed`` - the stored (or overriding) command is split into statements
  and each ``SELECT fn(args)`` is invoked in textual order. Statements do not
  share a transaction; a later failure leaves earlier effects in place.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from darkroom.models.enums import ExecutionMode
from darkroom.rpc.client import RpcResult
from darkroom.services.job_catalog import JobDescriptor
from darkroom.services.maintenance_summary import summarize_maintenance
from darkroom.services.procedures import ProcedureCall, UnparsedStatement, parse_command
from darkroom.workers.supervisor import BackgroundTaskSupervisor, CompletionCallback

logger = logging.getLogger(__name__)

BACKGROUND_MESSAGE = "Job triggered, running in background. Check job progress for completion."
WEBHOOK_PLACEHOLDER = "Job triggered (outbound webhook call - result is not observable here, check logs)"
UNKNOWN_PLACEHOLDER = "Job command format not recognized - check logs for execution status"


class ProcedureFailed(Exception):
    """A procedure ran but reported an error."""


@dataclass
class DispatchOutcome:
    success: bool
    result: Any = None
    error: str | None = None
    background: bool = False
    executed_command: str = ""


@dataclass
class _StatementResult:
    function: str
    result: Any = None
    error: str | None = None


class CommandDispatcher:
    """Executes one job's unit of work against the RPC client."""

    def __init__(self, rpc, supervisor: BackgroundTaskSupervisor | None = None):
        self.rpc = rpc
        self.supervisor = supervisor

    async def dispatch(
        self,
        command: str,
        descriptor: JobDescriptor,
        on_background_complete: CompletionCallback | None = None,
        today: date | None = None,
    ) -> DispatchOutcome:
        if descriptor.mode == ExecutionMode.BACKGROUND:
            return self._dispatch_background(descriptor, on_background_complete)
        if descriptor.mode == ExecutionMode.WRAPPED:
            return await self._dispatch_wrapped(descriptor)
        return await self._dispatch_parsed(
            descriptor.command_override or command,
            descriptor,
            today=today,
        )

    # ------------------------------------------------------------------
    # Wrapped modes
    # ------------------------------------------------------------------

    async def _call_or_raise(self, procedure: str, params: dict) -> Any:
        result = await self.rpc.call(procedure, params or None)
        if result.error:
            raise ProcedureFailed(result.error.message)
        return result.data

    def _dispatch_background(
        self,
        descriptor: JobDescriptor,
        on_complete: CompletionCallback | None,
    ) -> DispatchOutcome:
        if self.supervisor is None:
            raise RuntimeError("Background dispatch requires a task supervisor")
        procedure, params = descriptor.procedure, dict(descriptor.params)
        self.supervisor.spawn(
            descriptor.job_id,
            procedure,
            lambda: self._call_or_raise(procedure, params),
            on_complete,
        )
        return DispatchOutcome(
            success=True,
            result={"message": BACKGROUND_MESSAGE, "procedure": procedure, "params": params},
            background=True,
            executed_command=descriptor.wrapper_command or procedure,
        )

    async def _dispatch_wrapped(self, descriptor: JobDescriptor) -> DispatchOutcome:
        result = await self.rpc.call(descriptor.procedure, dict(descriptor.params) or None)
        error = result.error.message if result.error else None
        return DispatchOutcome(
            success=error is None,
            result=result.data,
            error=error,
            executed_command=descriptor.wrapper_command or descriptor.procedure,
        )

    # ------------------------------------------------------------------
    # Parsed mode
    # ------------------------------------------------------------------

    async def invoke(self, call: ProcedureCall) -> RpcResult:
        """Call a parsed procedure, retrying alternative parameter names on rejection."""
        if not call.params:
            return await self.rpc.call(call.function)

        result = await self.rpc.call(call.function, call.params)
        if result.ok or not call.alternatives:
            return result

        tried = set(call.params)
        value = call.argument_value
        for name in call.alternatives:
            if name in tried:
                continue
            tried.add(name)
            logger.debug("Retrying %s with parameter %s", call.function, name)
            retry = await self.rpc.call(call.function, {name: value})
            if retry.ok:
                logger.info("%s accepted parameter name %s", call.function, name)
                return retry
        return result

    async def _dispatch_parsed(
        self,
        command: str,
        descriptor: JobDescriptor,
        today: date | None = None,
    ) -> DispatchOutcome:
        results: list[_StatementResult] = []
        error: str | None = None
        last_error: str | None = None

        for statement in parse_command(command, today=today):
            if isinstance(statement, UnparsedStatement):
                placeholder = WEBHOOK_PLACEHOLDER if statement.is_webhook else UNKNOWN_PLACEHOLDER
                function = "net.http_post" if statement.is_webhook else "unknown"
                results.append(_StatementResult(function=function, result=placeholder))
                continue

            try:
                rpc_result = await self.invoke(statement)
            except Exception as exc:
                logger.warning("Statement %s raised: %s", statement.function, exc)
                last_error = str(exc) or f"Failed to execute {statement.function}"
                continue

            if rpc_result.error:
                error = rpc_result.error.message
            results.append(_StatementResult(
                function=statement.function,
                result=rpc_result.data,
                error=rpc_result.error.message if rpc_result.error else None,
            ))

        combined: Any = None
        if len(results) == 1:
            combined = results[0].result
            error = results[0].error or error
        elif results:
            combined = [
                {
                    "function": r.function,
                    "success": r.error is None,
                    "result": r.result,
                    "error": r.error,
                }
                for r in results
            ]

        if last_error and not error:
            error = last_error

        if descriptor.summarize and error is None:
            summary = summarize_maintenance(combined)
            if summary is not None:
                combined = summary

        return DispatchOutcome(
            success=error is None,
            result=combined,
            error=error,
            executed_command=command,
        )
