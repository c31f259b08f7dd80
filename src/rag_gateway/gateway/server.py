"""Tool execution gateway: rate limiting, validation, containment and stats."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from langchain_core.tools import StructuredTool
from pydantic import BaseModel

from rag_gateway.config import GatewayConfig
from rag_gateway.errors import (
    GatewayError,
    RateLimitExceededError,
    ToolDisabledError,
    ToolNotFoundError,
    ToolValidationError,
)
from rag_gateway.gateway.rate_limiter import RateLimiter
from rag_gateway.gateway.registry import ToolDefinition, ToolRegistry
from rag_gateway.gateway.stats import ExecutionStats
from rag_gateway.obs.logging_config import get_logger
from rag_gateway.obs.timing import Timer
from rag_gateway.safety.sanitizer import detect_injection, sanitize_text
from rag_gateway.types import ExecutionOutcome, ToolContext, ToolError, ToolTrace

logger = get_logger(__name__)

_PREVIEW_CHARS = 320


class ToolGateway:
    """Executes registered tools on behalf of callers.

    Every call returns an :class:`ExecutionOutcome`; no handler exception
    reaches the caller. Unknown and disabled tools fail before the rate
    limiter is consulted and are not recorded in the statistics.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        rate_limiter: RateLimiter,
        config: GatewayConfig | None = None,
    ) -> None:
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.config = config or GatewayConfig()
        self._stats = ExecutionStats()
        self._tool_stats: dict[str, ExecutionStats] = {}
        self._observer: Callable[[ToolTrace], None] | None = None

    @property
    def name(self) -> str:
        return self.config.server_name

    def register_tool(
        self, name: str, handler: Callable[[Any, Any], Any] | None, **kwargs: Any
    ) -> ToolDefinition:
        kwargs.setdefault("rate_limit_per_minute", self.config.default_rate_limit_per_minute)
        return self.registry.register_tool(name, handler, **kwargs)

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Set an optional callback invoked after each tool execution."""
        self._observer = observer

    async def execute(
        self,
        tool_name: str,
        tool_input: Any = None,
        context: ToolContext | Mapping[str, Any] | None = None,
    ) -> ExecutionOutcome:
        definition = self.registry.get(tool_name)
        if definition is None:
            return self._rejected(tool_name, ToolNotFoundError(tool_name))
        if not definition.enabled:
            return self._rejected(tool_name, ToolDisabledError(tool_name))

        ctx = ToolContext.from_value(context)
        payload, warnings = self._screen_input(tool_name, tool_input)

        result: Any = None
        error: ToolError | None = None
        with Timer() as timer:
            try:
                result = await self._run(definition, payload, ctx)
            except GatewayError as exc:
                error = _to_tool_error(exc)
            except Exception as exc:
                error = ToolError(kind="handler", message=str(exc) or type(exc).__name__)

        success = error is None
        latency_ms = timer.elapsed_ms
        self._record(tool_name, success, latency_ms)

        if success:
            logger.info(
                "tool_executed", tool=tool_name, latency_ms=round(latency_ms, 2), user_id=ctx.user_id
            )
        else:
            logger.error(
                "tool_execution_failed",
                tool=tool_name,
                kind=error.kind,
                error=error.message,
                latency_ms=round(latency_ms, 2),
                user_id=ctx.user_id,
            )

        if self._observer is not None:
            preview = str(result) if success else error.message
            self._notify(
                ToolTrace(
                    name=tool_name,
                    input_payload=payload if isinstance(payload, dict) else {"raw": payload},
                    output_preview=preview[:_PREVIEW_CHARS],
                    latency_ms=latency_ms,
                    success=success,
                )
            )

        return ExecutionOutcome(
            success=success,
            tool=tool_name,
            server=self.name,
            latency_ms=latency_ms,
            result=result,
            error=error,
            warnings=warnings,
        )

    async def _run(self, definition: ToolDefinition, payload: Any, ctx: ToolContext) -> Any:
        decision = await self.rate_limiter.check(
            definition.name, ctx.identity, definition.rate_limit_per_minute
        )
        if not decision.allowed:
            raise RateLimitExceededError(definition.name, definition.rate_limit_per_minute)

        validated = definition.validate_input(payload)
        logger.debug("tool_executing", tool=definition.name)

        result = definition.handler(validated, ctx)
        if inspect.isawaitable(result):
            result = await result
        return _normalize_result(result)

    def _notify(self, trace: ToolTrace) -> None:
        # The outcome is already decided; observer errors must not change it.
        try:
            self._observer(trace)
        except Exception:
            logger.exception("tool_observer_failed", tool=trace.name)

    def _screen_input(self, tool_name: str, raw: Any) -> tuple[Any, tuple[str, ...]]:
        if raw is None:
            return {}, ()
        if not isinstance(raw, Mapping):
            return raw, ()

        payload: dict[str, Any] = {}
        warnings: list[str] = []
        for key, value in raw.items():
            if isinstance(value, str):
                report = detect_injection(value)
                if report.detected:
                    warnings.append(f"possible prompt injection in '{key}'")
                    logger.warning(
                        "prompt_injection_suspected",
                        tool=tool_name,
                        field=key,
                        patterns=report.match_count,
                    )
                value = sanitize_text(value)
            payload[key] = value
        return payload, tuple(warnings)

    def _rejected(self, tool_name: str, exc: GatewayError) -> ExecutionOutcome:
        logger.warning("tool_rejected", tool=tool_name, kind=exc.kind)
        return ExecutionOutcome(
            success=False,
            tool=tool_name,
            server=self.name,
            latency_ms=0.0,
            error=_to_tool_error(exc),
        )

    def _record(self, tool_name: str, success: bool, latency_ms: float) -> None:
        self._stats.record(success, latency_ms)
        self._tool_stats.setdefault(tool_name, ExecutionStats()).record(success, latency_ms)

    def tool_stats(self, tool_name: str) -> ExecutionStats:
        return self._tool_stats.get(tool_name) or ExecutionStats()

    @property
    def stats(self) -> ExecutionStats:
        return self._stats

    def list_tool_definitions(self) -> list[dict[str, Any]]:
        return [
            {**definition.describe(), "server": self.name}
            for definition in self.registry.definitions()
        ]

    def get_stats(self) -> dict[str, Any]:
        return {
            "server": self.name,
            "description": self.config.description,
            "tools": len(self.registry),
            "stats": self._stats.snapshot(),
            "tool_stats": {
                definition.name: self.tool_stats(definition.name).snapshot()
                for definition in self.registry.definitions(include_disabled=True)
            },
        }

    async def health_check(self) -> dict[str, Any]:
        try:
            alive = await self.rate_limiter.ping()
        except Exception as exc:
            return {"status": "unhealthy", "server": self.name, "error": str(exc)}
        if not alive:
            return {
                "status": "unhealthy",
                "server": self.name,
                "error": "rate limit store did not answer ping",
            }
        return {
            "status": "healthy",
            "server": self.name,
            "tools": len(self.registry),
            "rate_limit_store": "connected",
        }

    def as_langchain_tools(
        self, context: ToolContext | Mapping[str, Any] | None = None
    ) -> list[StructuredTool]:
        """Export enabled tools for an LLM planning agent, bound to ``context``."""
        return [
            StructuredTool.from_function(
                coroutine=self._build_coroutine(definition.name, context),
                name=definition.name,
                description=definition.description or definition.name,
                args_schema=definition.input_schema,
            )
            for definition in self.registry.definitions()
        ]

    def _build_coroutine(
        self, tool_name: str, context: ToolContext | Mapping[str, Any] | None
    ) -> Callable[..., Any]:
        async def _callable(**kwargs: Any) -> dict[str, Any]:
            outcome = await self.execute(tool_name, kwargs, context)
            return outcome.to_dict()

        return _callable

    async def aclose(self) -> None:
        await self.rate_limiter.aclose()
        logger.info("gateway_closed", server=self.name)


def _to_tool_error(exc: GatewayError) -> ToolError:
    details: list[dict[str, Any]] = []
    if isinstance(exc, ToolValidationError):
        details = [{"field": v.field, "message": v.message} for v in exc.violations]
    return ToolError(kind=exc.kind, message=str(exc), details=details)


def _normalize_result(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    to_dict = getattr(result, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return result
