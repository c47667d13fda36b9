"""
Descriptive statistics over the ranked top-function list.

These are heuristics, not call-graph analyses: the critical path is simply the five
heaviest functions by self time, and hot paths treat each top function as its own
one-element path, whether or not those functions call each other. Only `deepestStacks`
and the children of root functions look at the actual call tree.
"""

import math
from collections import deque
from typing import ClassVar, Final, Literal

from pydantic import BaseModel, ConfigDict, Field

from cpuscope.profile.selector import get_display_name, should_ignore_function, to_milliseconds
from cpuscope.profile.tree import CallTree
from cpuscope.profile.types import AggregatedFunction

CRITICAL_PATH_SIZE: Final[int] = 5
MOST_FREQUENT_PATHS_SIZE: Final[int] = 3
DEEPEST_STACKS_SIZE: Final[int] = 3
HOT_PATH_CANDIDATES: Final[int] = 10
HOT_PATHS_SIZE: Final[int] = 5
TOP_CONSUMERS_SIZE: Final[int] = 5
MAX_LEAF_FUNCTIONS: Final[int] = 10
MAX_ROOT_CHILDREN: Final[int] = 10
LEAF_SELF_TIME_RATIO: Final[float] = 0.8
SINGLE_BOTTLENECK_THRESHOLD: Final[float] = 50.0
FEW_HOT_FUNCTIONS_THRESHOLD: Final[float] = 70.0
ROOT_FUNCTION_MARKERS: Final[tuple[str, ...]] = ("(program)", "(root)")

ExecutionPatternType = Literal["single-bottleneck", "few-hot-functions", "distributed", "unknown"]


class FlamegraphModel(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(populate_by_name=True)


class FunctionTiming(FlamegraphModel):
    function: str
    self_time: int = Field(alias="selfTime")
    total_time: int = Field(alias="totalTime")
    percentage: str
    location: str


class StackPath(FlamegraphModel):
    depth: int
    path: list[str]


class FrequentPath(FlamegraphModel):
    path: list[str]
    frequency: int


class HotPath(FlamegraphModel):
    path: list[str]
    total_time: int = Field(alias="totalTime")
    percentage: str


class CallStackAnalysis(FlamegraphModel):
    deepest_stacks: list[StackPath] = Field(alias="deepestStacks")
    most_frequent_paths: list[FrequentPath] = Field(alias="mostFrequentPaths")
    critical_path: list[FunctionTiming] = Field(alias="criticalPath")


class ChildFunction(FlamegraphModel):
    name: str
    self_time: int = Field(alias="selfTime")


class RootFunction(FlamegraphModel):
    name: str
    self_time: int = Field(alias="selfTime")
    children: list[ChildFunction]


class FunctionHierarchy(FlamegraphModel):
    root_functions: list[RootFunction] = Field(alias="rootFunctions")
    leaf_functions: list[FunctionTiming] = Field(alias="leafFunctions")


class CpuConsumer(FlamegraphModel):
    name: str
    percentage: str
    visual_weight: int = Field(alias="visualWeight")


class ExecutionPattern(FlamegraphModel):
    pattern: ExecutionPatternType
    description: str


class VisualSummary(FlamegraphModel):
    total_execution_time: float = Field(alias="totalExecutionTime")
    top_cpu_consumers: list[CpuConsumer] = Field(alias="topCPUConsumers")
    execution_pattern: ExecutionPattern = Field(alias="executionPattern")


class FlamegraphAnalysis(FlamegraphModel):
    call_stack: CallStackAnalysis = Field(alias="callStack")
    hot_paths: list[HotPath] = Field(alias="hotPaths")
    function_hierarchy: FunctionHierarchy = Field(alias="functionHierarchy")
    visual_summary: VisualSummary = Field(alias="visualSummary")


def _timing(func: AggregatedFunction) -> FunctionTiming:
    return FunctionTiming(
        function=func.function_name,
        self_time=func.self_time,
        total_time=func.total_time,
        percentage=func.percentage,
        location=func.location,
    )


def is_leaf_function(func: AggregatedFunction) -> bool:
    return func.self_time > func.total_time * LEAF_SELF_TIME_RATIO


def analyze_execution_pattern(functions: list[AggregatedFunction]) -> ExecutionPattern:
    if len(functions) == 0:
        return ExecutionPattern(pattern="unknown", description="No significant execution pattern detected")

    top = functions[0]
    top_percentage = float(top.percentage)
    if top_percentage > SINGLE_BOTTLENECK_THRESHOLD:
        return ExecutionPattern(
            pattern="single-bottleneck",
            description=f"Dominated by {top.function_name} ({top.percentage}% of CPU time)",
        )
    if sum(float(func.percentage) for func in functions[:3]) > FEW_HOT_FUNCTIONS_THRESHOLD:
        return ExecutionPattern(pattern="few-hot-functions", description="CPU time concentrated in a few hot functions")
    return ExecutionPattern(pattern="distributed", description="CPU time distributed across many functions")


def find_deepest_stacks(tree: CallTree, limit: int = DEEPEST_STACKS_SIZE) -> list[StackPath]:
    depths: dict[int, int] = {}
    queue = deque((root.id, 0) for root in tree.roots())
    while queue:
        node_id, depth = queue.popleft()
        if node_id in depths:
            continue
        depths[node_id] = depth
        node = tree.nodes[node_id]
        queue.extend((child_id, depth + 1) for child_id in node.child_ids)

    sampled = [
        node
        for node in tree
        if node.hit_count > 0 and node.id in depths and not should_ignore_function(node.call_frame)
    ]
    sampled.sort(key=lambda node: (depths[node.id], node.self_time), reverse=True)

    stacks: list[StackPath] = []
    for node in sampled[:limit]:
        path = [
            get_display_name(frame.call_frame)
            for frame in tree.path_to_root(node.id)
            if not should_ignore_function(frame.call_frame)
        ]
        stacks.append(StackPath(depth=len(path), path=path))
    return stacks


def build_root_functions(functions: list[AggregatedFunction], tree: CallTree | None) -> list[RootFunction]:
    roots: list[RootFunction] = []
    for func in functions:
        if not any(marker in func.function_name for marker in ROOT_FUNCTION_MARKERS):
            continue
        children: list[ChildFunction] = []
        node = tree.get(func.node_id) if tree is not None else None
        if node is not None and tree is not None:
            child_nodes = [tree.nodes[child_id] for child_id in node.child_ids]
            child_nodes.sort(key=lambda child: child.self_time, reverse=True)
            children = [
                ChildFunction(name=get_display_name(child.call_frame), self_time=to_milliseconds(child.self_time))
                for child in child_nodes[:MAX_ROOT_CHILDREN]
            ]
        roots.append(RootFunction(name=func.function_name, self_time=func.self_time, children=children))
    return roots


def summarize_flamegraph(
    functions: list[AggregatedFunction], total_execution_time_ms: float, tree: CallTree | None = None
) -> FlamegraphAnalysis:
    """Summarize ranked functions (self time descending) into a flamegraph-style overview."""
    hot_paths = [
        HotPath(path=[func.function_name], total_time=func.total_time, percentage=func.percentage)
        for func in functions[:HOT_PATH_CANDIDATES]
    ]
    hot_paths.sort(key=lambda hot_path: hot_path.total_time, reverse=True)

    return FlamegraphAnalysis(
        call_stack=CallStackAnalysis(
            deepest_stacks=find_deepest_stacks(tree) if tree is not None else [],
            most_frequent_paths=[
                FrequentPath(path=[func.function_name], frequency=func.hit_count)
                for func in functions[:MOST_FREQUENT_PATHS_SIZE]
            ],
            critical_path=[_timing(func) for func in functions[:CRITICAL_PATH_SIZE]],
        ),
        hot_paths=hot_paths[:HOT_PATHS_SIZE],
        function_hierarchy=FunctionHierarchy(
            root_functions=build_root_functions(functions, tree),
            leaf_functions=[_timing(func) for func in functions if is_leaf_function(func)][:MAX_LEAF_FUNCTIONS],
        ),
        visual_summary=VisualSummary(
            total_execution_time=total_execution_time_ms,
            top_cpu_consumers=[
                CpuConsumer(
                    name=func.function_name,
                    percentage=func.percentage,
                    visual_weight=math.floor(float(func.percentage) + 0.5),
                )
                for func in functions[:TOP_CONSUMERS_SIZE]
            ],
            execution_pattern=analyze_execution_pattern(functions),
        ),
    )
