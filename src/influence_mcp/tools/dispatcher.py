"""Invocation pipeline: lookup, validation, bounded execution, normalization."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from influence_mcp.errors import (
    HandlerError,
    InfluenceMCPError,
    InvocationError,
    ToolTimeout,
)
from influence_mcp.obs.logger import get_logger
from influence_mcp.obs.tracing import Timer
from influence_mcp.tools.registry import ToolRegistry
from influence_mcp.tools.schema import validate_arguments
from influence_mcp.types import ToolResult, ToolTrace

log = get_logger("dispatcher")

_PREVIEW_CHARS = 320

_STATUS_BY_ERROR = {
    "ToolNotFound": "not_found",
    "InvalidArguments": "invalid_arguments",
    "ToolTimeout": "timeout",
    "HandlerError": "error",
}


class ToolDispatcher:
    """Sequences a tool call; performs no business logic of its own.

    The timeout is enforced at the handler boundary only. Downstream calls
    already in flight when it fires may still complete on the remote side.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        timeout_seconds: float = 60.0,
        observer: Callable[[ToolTrace], Any] | None = None,
    ) -> None:
        self.registry = registry
        self.timeout_seconds = timeout_seconds
        self._observer = observer

    def set_observer(self, observer: Callable[[ToolTrace], Any] | None) -> None:
        """Set an optional callback invoked after each tool execution."""
        self._observer = observer

    async def invoke(self, name: str, raw_args: Any = None) -> ToolResult:
        timer = Timer()
        try:
            with timer:
                result = await self._invoke(name, raw_args)
        except InvocationError as exc:
            self._emit(name, raw_args, exc.message, _STATUS_BY_ERROR[type(exc).__name__], timer)
            raise

        status = "soft_error" if result.is_error else "ok"
        self._emit(name, raw_args, "\n".join(block.text for block in result.content), status, timer)
        return result

    async def _invoke(self, name: str, raw_args: Any) -> ToolResult:
        spec = self.registry.get(name)
        args = validate_arguments(spec.args_schema, raw_args, tool_name=name)

        budget = asyncio.timeout(self.timeout_seconds)
        try:
            async with budget:
                output = await spec.handler(args)
        except TimeoutError:
            if not budget.expired():
                log.exception("tool %s raised a timeout of its own", name)
                raise HandlerError(name, f"Tool {name} timed out waiting on a dependency") from None
            log.warning("tool %s exceeded %.1fs budget", name, self.timeout_seconds)
            raise ToolTimeout(name, self.timeout_seconds) from None
        except InfluenceMCPError as exc:
            log.warning("tool %s failed: %s", name, exc)
            raise HandlerError(name, str(exc)) from None
        except Exception:
            log.exception("tool %s raised an unexpected error", name)
            raise HandlerError(name, f"Tool {name} failed with an internal error") from None

        return _to_result(output)

    def _emit(self, name: str, raw_args: Any, output: str, status: str, timer: Timer) -> None:
        log.info("tool %s status=%s latency_ms=%.1f", name, status, timer.elapsed_ms)
        if self._observer is None:
            return
        self._observer(
            ToolTrace(
                name=name,
                input_payload=raw_args if isinstance(raw_args, dict) else {"raw": repr(raw_args)},
                output_preview=output[:_PREVIEW_CHARS],
                latency_ms=timer.elapsed_ms,
                status=status,
            )
        )


def _to_result(output: Any) -> ToolResult:
    if isinstance(output, ToolResult):
        return output
    if isinstance(output, str):
        return ToolResult.text(output)
    return ToolResult.text(json.dumps(output, indent=2, default=str))
