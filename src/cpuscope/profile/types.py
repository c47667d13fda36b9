from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from cpuscope.sourcemap.types import ResolvedLocation

# All times in this module are in the profile's native unit (microseconds)
# unless the field name says otherwise.


class CallFrame(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    function_name: str = Field(default="", alias="functionName")
    url: str = ""
    line_number: int = Field(default=0, alias="lineNumber")
    column_number: int = Field(default=0, alias="columnNumber")


class ProfileNode(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    call_frame: CallFrame = Field(default_factory=CallFrame, alias="callFrame")
    children: tuple[int, ...] = ()
    parent: int | None = None

    # filled in by the aggregator and the call-tree builder
    self_time: int = 0
    hit_count: int = 0
    total_time: int = 0
    parent_id: int | None = None
    child_ids: list[int] = Field(default_factory=list)


class CpuProfile(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(populate_by_name=True, extra="ignore")

    nodes: list[ProfileNode]
    samples: list[int]
    time_deltas: list[int] = Field(default_factory=list, alias="timeDeltas")
    start_time: int | None = Field(default=None, alias="startTime")
    end_time: int | None = Field(default=None, alias="endTime")
    sample_interval: int = Field(alias="sampleInterval")


class CollapsedSamples(BaseModel):
    """Run-length collapsed sample stream.

    `node_ids[i]` started executing at `sample_times[i]` and ran until the next retained sample,
    or until `end_time` for the last one. Adjacent ids are always distinct.
    """

    node_ids: list[int] = Field(default_factory=list)
    sample_times: list[int] = Field(default_factory=list)
    end_time: int = 0

    @property
    def total_time(self) -> int:
        if len(self.sample_times) == 0:
            return 0
        return self.end_time - self.sample_times[0]


class SampleAggregation(BaseModel):
    collapsed: CollapsedSamples
    self_times: dict[int, int]
    hit_counts: dict[int, int]
    total_time: int


class AggregatedFunction(BaseModel):
    node_id: int
    function_name: str
    url: str
    # 1-based
    line_number: int
    column_number: int
    # milliseconds
    self_time: int
    total_time: int
    hit_count: int
    percentage: str
    resolved: ResolvedLocation | None = None

    @property
    def is_source_mapped(self) -> bool:
        return self.resolved is not None and self.resolved.is_resolved

    @property
    def location(self) -> str:
        return f"{self.url}:{self.line_number}"
