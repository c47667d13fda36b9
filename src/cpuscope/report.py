from typing import Any, ClassVar
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from cpuscope.flamegraph import FlamegraphAnalysis
from cpuscope.profile.trace import ScriptExecutionAnalysis
from cpuscope.profile.types import AggregatedFunction


def get_file_name_from_url(url: str) -> str:
    if url == "":
        return "unknown"
    path = urlparse(url).path if "://" in url else url
    return path.split("/")[-1] or "unknown"


class ExecutiveSummary(BaseModel):
    total_execution_time_ms: float
    total_samples: int
    sample_interval_ms: float


class HighImpactFunction(BaseModel):
    """One hot function. `originalX` fields are only set when `isSourceMapped` is true."""

    model_config: ClassVar[ConfigDict] = ConfigDict(populate_by_name=True)

    function: str
    file: str
    execution_time_ms: int
    cpu_percentage: str
    call_count: int
    location: str
    original_file: str | None = Field(default=None, alias="originalFile")
    original_line: int | None = Field(default=None, alias="originalLine")
    original_column: int | None = Field(default=None, alias="originalColumn")
    original_name: str | None = Field(default=None, alias="originalName")
    is_source_mapped: bool = Field(default=False, alias="isSourceMapped")
    full_original_path: str | None = Field(default=None, alias="fullOriginalPath")
    source_map_url: str | None = Field(default=None, alias="sourceMapUrl")

    @staticmethod
    def from_function(func: AggregatedFunction) -> "HighImpactFunction":
        entry = HighImpactFunction(
            function=func.function_name,
            file=get_file_name_from_url(func.url),
            execution_time_ms=func.self_time,
            cpu_percentage=func.percentage,
            call_count=func.hit_count,
            location=func.location,
        )
        resolved = func.resolved
        if resolved is None or not resolved.is_resolved:
            return entry
        return entry.model_copy(
            update={
                "original_file": resolved.original_file,
                "original_line": resolved.original_line,
                "original_column": resolved.original_column,
                "original_name": resolved.original_name or func.function_name,
                "is_source_mapped": True,
                "full_original_path": resolved.full_original_path,
                "source_map_url": resolved.source_map_url,
            }
        )


class ScriptPerformance(BaseModel):
    script_execution_analysis: ScriptExecutionAnalysis


class CpuProfileAnalysis(BaseModel):
    executive_summary: ExecutiveSummary
    high_impact_functions: list[HighImpactFunction]
    flamegraph_analysis: FlamegraphAnalysis | None = None
    script_performance: ScriptPerformance | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
