import contextlib
import functools
import inspect
import time
from collections import defaultdict
from typing import Any, Callable, ParamSpec, TypeVar, cast

from loguru import logger
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider as SDKTracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import Status, StatusCode, Tracer

from cpuscope.common.config import config

P = ParamSpec("P")
R = TypeVar("R")


class AnalysisProfiler:
    """
    OpenTelemetry-based stage timer for the analysis pipeline itself.

    Every pipeline stage (load, aggregate, build tree, resolve, summarize) runs inside a span,
    so a slow analysis run can be broken down by stage with `stage_durations`.
    """

    def __init__(self, service_name: str = "cpuscope", enable: bool | None = None):
        """
        Args:
            service_name (str): Name of the service for tracing context
            enable (bool, optional): Overrides `config.enable_profiling`
        """
        self.service_name: str = service_name
        self.memory_exporter: InMemorySpanExporter = InMemorySpanExporter()
        self.enable: bool = config.enable_profiling if enable is None else enable
        self.tracer: Tracer = self.setup_tracer()

    def setup_tracer(self) -> Tracer:
        """Set up a private tracer provider with in-memory span collection."""
        resource = Resource.create({"service.name": self.service_name})
        provider = SDKTracerProvider(resource=resource)
        provider.add_span_processor(SimpleSpanProcessor(self.memory_exporter))
        # not registered globally: each profiler keeps its own spans
        return provider.get_tracer(__name__)

    @contextlib.asynccontextmanager
    async def profile(self, operation_name: str, attributes: dict[str, Any] | None = None):
        """
        Context manager for profiling an async section of code.

        Args:
            operation_name (str): Name of the operation being profiled
            attributes (dict, optional): Additional attributes to attach to the span
        """
        if not self.enable:
            yield None
            return

        with self.profile_sync(operation_name, attributes) as span:
            yield span

    @contextlib.contextmanager
    def profile_sync(self, operation_name: str, attributes: dict[str, Any] | None = None):
        """Synchronous counterpart of `profile`."""
        if not self.enable:
            yield None
            return

        with self.tracer.start_as_current_span(operation_name) as span:
            for key, value in (attributes or {}).items():
                span.set_attribute(key, value)
            span.set_attribute("start_time", time.perf_counter())

            try:
                yield span
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise
            finally:
                span.set_attribute("end_time", time.perf_counter())

    def profiled(
        self, operation_name: str | None = None, attributes: dict[str, Any] | None = None
    ) -> Callable[[Callable[P, R]], Callable[P, R]]:
        """
        Decorator that profiles a sync or async function.

        Uses the qualified name (classname.functionname) as the operation name unless a custom name is provided.
        """

        def decorator(func: Callable[P, R]) -> Callable[P, R]:
            op_name = operation_name or func.__qualname__

            if inspect.iscoroutinefunction(func):

                @functools.wraps(func)
                async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
                    async with self.profile(op_name, attributes):
                        return await func(*args, **kwargs)

                return cast(Callable[P, R], async_wrapper)  # pyright: ignore[reportInvalidCast]

            @functools.wraps(func)
            def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
                with self.profile_sync(op_name, attributes):
                    return func(*args, **kwargs)

            return sync_wrapper

        return decorator

    def get_span_data(self) -> list[dict[str, Any]]:
        """Extract span data from the exporter."""
        span_data: list[dict[str, Any]] = []

        for span in self.memory_exporter.get_finished_spans():
            if span.context is None:
                continue

            # nanoseconds to seconds
            start_time = span.start_time / 1_000_000_000 if span.start_time is not None else 0
            end_time = span.end_time / 1_000_000_000 if span.end_time is not None else 0

            span_data.append(
                {
                    "name": span.name,
                    "span_id": span.context.span_id,
                    "parent_id": span.parent.span_id if span.parent else None,
                    "start_time": start_time,
                    "end_time": end_time,
                    "duration": end_time - start_time,
                    "attributes": dict(span.attributes) if span.attributes else {},
                    "status": span.status.status_code if span.status else StatusCode.UNSET,
                }
            )

        return span_data

    def stage_durations(self) -> dict[str, float]:
        """Total seconds spent per operation name."""
        durations: defaultdict[str, float] = defaultdict(float)
        for span in self.get_span_data():
            durations[span["name"]] += span["duration"]
        return dict(durations)

    def log_results(self) -> None:
        if not self.enable:
            raise RuntimeError("Profiling is disabled. Enable it by setting enable_profiling=true in your config.")
        for name, duration in sorted(self.stage_durations().items(), key=lambda item: -item[1]):
            logger.info(f"⏱️ {name:<40} {duration * 1000:10.2f} ms")

    def clear(self) -> None:
        self.memory_exporter.clear()


profiler = AnalysisProfiler()
