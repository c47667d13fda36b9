import json
from pathlib import Path
from typing import Any

from loguru import logger

from cpuscope.common.config import config
from cpuscope.common.profiling import AnalysisProfiler
from cpuscope.common.profiling import profiler as default_profiler
from cpuscope.flamegraph import summarize_flamegraph
from cpuscope.profile.aggregator import aggregate_samples
from cpuscope.profile.loader import ProfileSource, load_profile, load_trace_events
from cpuscope.profile.selector import select_top_functions
from cpuscope.profile.trace import analyze_trace_events
from cpuscope.profile.tree import build_call_tree
from cpuscope.profile.types import AggregatedFunction, CpuProfile
from cpuscope.report import CpuProfileAnalysis, ExecutiveSummary, HighImpactFunction, ScriptPerformance
from cpuscope.sourcemap.resolver import SourceMapResolver
from cpuscope.sourcemap.types import Location


class CpuProfileAnalyzer:
    """
    Runs the whole pipeline: load → aggregate samples → build call tree → select top
    functions → resolve source maps → summarize.

    Without an injected resolver, every `analyze` call gets a fresh `SourceMapResolver`, so
    no cache outlives a run.
    """

    def __init__(self, resolver: SourceMapResolver | None = None, profiler: AnalysisProfiler | None = None) -> None:
        self.resolver: SourceMapResolver | None = resolver
        self.profiler: AnalysisProfiler = profiler or default_profiler

    async def analyze(
        self, profile: ProfileSource | CpuProfile, trace_events: list[dict[str, Any]] | None = None
    ) -> CpuProfileAnalysis:
        async with self.profiler.profile("analyze"):
            with self.profiler.profile_sync("load_profile"):
                cpu_profile = profile if isinstance(profile, CpuProfile) else load_profile(profile)
            with self.profiler.profile_sync("aggregate_samples"):
                aggregation = aggregate_samples(cpu_profile)
            with self.profiler.profile_sync("build_call_tree"):
                tree = build_call_tree(cpu_profile, aggregation)
            with self.profiler.profile_sync("select_top_functions"):
                functions = select_top_functions(tree, aggregation.total_time)

            async with self.profiler.profile("resolve_source_maps", {"nb_functions": len(functions)}):
                if self.resolver is not None:
                    functions = await self.resolve_functions(self.resolver, functions)
                else:
                    async with SourceMapResolver() as resolver:
                        functions = await self.resolve_functions(resolver, functions)

            total_time_ms = aggregation.total_time / 1000
            with self.profiler.profile_sync("summarize"):
                flamegraph = summarize_flamegraph(functions, total_time_ms, tree)
                script_analysis = analyze_trace_events(trace_events) if trace_events else None

        logger.debug(f"Analyzed {len(cpu_profile.samples)} samples over {total_time_ms:.1f}ms")
        return CpuProfileAnalysis(
            executive_summary=ExecutiveSummary(
                total_execution_time_ms=total_time_ms,
                total_samples=len(cpu_profile.samples),
                sample_interval_ms=cpu_profile.sample_interval / 1000,
            ),
            high_impact_functions=[
                HighImpactFunction.from_function(func) for func in functions[: config.report_functions_limit]
            ],
            flamegraph_analysis=flamegraph,
            script_performance=(
                ScriptPerformance(script_execution_analysis=script_analysis) if script_analysis is not None else None
            ),
        )

    @staticmethod
    async def resolve_functions(
        resolver: SourceMapResolver, functions: list[AggregatedFunction]
    ) -> list[AggregatedFunction]:
        resolved_locations = await resolver.resolve_all(
            [
                Location(url=func.url, line=func.line_number, column=func.column_number, hinted_name=func.function_name)
                for func in functions
            ]
        )
        nb_resolved = sum(1 for location in resolved_locations if location.is_resolved)
        if nb_resolved > 0:
            logger.info(f"✅ Resolved source maps for {nb_resolved}/{len(resolved_locations)} functions")
        return [
            func.model_copy(update={"resolved": location})
            for func, location in zip(functions, resolved_locations, strict=True)
        ]

    async def analyze_files(self, profile_path: str | Path, trace_path: str | Path | None = None) -> CpuProfileAnalysis:
        trace_events: list[dict[str, Any]] | None = None
        if trace_path is not None and Path(trace_path).exists():
            trace_events = load_trace_events(Path(trace_path))
        elif trace_path is not None:
            logger.info(f"Trace file {trace_path} not found, skipping script analysis")
        return await self.analyze(Path(profile_path), trace_events)

    async def analyze_audit_report(self, report_path: str | Path) -> dict[str, Any]:
        """
        Map the long-task script urls of an existing audit report back to original sources.

        Resolved items get their `url`, `line` and `column` rewritten in place.
        """
        report_path = Path(report_path)
        if not report_path.exists():
            raise FileNotFoundError(f"Audit report not found: {report_path}")
        with report_path.open("r", encoding="utf-8") as f:
            report: dict[str, Any] = json.load(f)

        items = ((report.get("longTasks") or {}).get("details") or {}).get("items") or []
        items = [item for item in items if isinstance(item, dict) and isinstance(item.get("url"), str)]
        if len(items) == 0:
            return report

        async def resolve(resolver: SourceMapResolver) -> None:
            locations = await resolver.resolve_all([Location(url=item["url"]) for item in items])
            for item, location in zip(items, locations, strict=True):
                if location.is_resolved:
                    item["url"] = location.original_file
                    item["line"] = location.original_line
                    item["column"] = location.original_column

        if self.resolver is not None:
            await resolve(self.resolver)
        else:
            async with SourceMapResolver() as resolver:
                await resolve(resolver)
        return report
