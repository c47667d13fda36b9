import pytest

from cpuscope.flamegraph import analyze_execution_pattern, find_deepest_stacks, summarize_flamegraph
from cpuscope.profile.aggregator import aggregate_samples
from cpuscope.profile.loader import load_profile
from cpuscope.profile.selector import select_top_functions
from cpuscope.profile.tree import CallTree, build_call_tree
from cpuscope.profile.types import AggregatedFunction
from tests.helpers import make_profile


def _function(name: str, percentage: str, self_time: int = 1, total_time: int = 1, node_id: int = 0):
    return AggregatedFunction(
        node_id=node_id,
        function_name=name,
        url="https://example.com/app.js",
        line_number=1,
        column_number=1,
        self_time=self_time,
        total_time=total_time,
        hit_count=1,
        percentage=percentage,
    )


def _analyzed_profile() -> tuple[CallTree, list[AggregatedFunction]]:
    profile = load_profile(make_profile())
    aggregation = aggregate_samples(profile)
    tree = build_call_tree(profile, aggregation)
    return tree, select_top_functions(tree, aggregation.total_time)


@pytest.mark.parametrize(
    "percentages,expected",
    [
        (["60.00", "10.00"], "single-bottleneck"),
        (["50.00", "15.00", "10.00"], "few-hot-functions"),
        (["40.00", "20.00", "15.00", "5.00"], "few-hot-functions"),
        (["30.00", "20.00", "10.00", "10.00"], "distributed"),
        ([], "unknown"),
    ],
)
def test_execution_pattern(percentages: list[str], expected: str) -> None:
    functions = [_function(f"f{i}", percentage) for i, percentage in enumerate(percentages)]
    assert analyze_execution_pattern(functions).pattern == expected


def test_single_bottleneck_description_names_the_function() -> None:
    pattern = analyze_execution_pattern([_function("parseJson", "75.50")])
    assert pattern.description == "Dominated by parseJson (75.50% of CPU time)"


def test_deepest_stacks_follow_the_call_tree() -> None:
    tree, _ = _analyzed_profile()
    stacks = find_deepest_stacks(tree)

    assert [stack.depth for stack in stacks] == [3, 2, 1]
    assert stacks[0].path == ["main", "(anonymous main.3f2a9c1b.js:1)", "(garbage collector)"]
    assert stacks[2].path == ["main"]


def test_summarize_flamegraph() -> None:
    tree, functions = _analyzed_profile()
    analysis = summarize_flamegraph(functions, 9.0, tree)

    assert [timing.function for timing in analysis.call_stack.critical_path] == [
        "(anonymous main.3f2a9c1b.js:1)",
        "main",
        "(program)",
        "(garbage collector)",
    ]
    assert [(path.path, path.frequency) for path in analysis.call_stack.most_frequent_paths] == [
        (["(anonymous main.3f2a9c1b.js:1)"], 1),
        (["main"], 1),
        (["(program)"], 2),
    ]
    assert [(path.path[0], path.total_time) for path in analysis.hot_paths] == [
        ("main", 7),
        ("(anonymous main.3f2a9c1b.js:1)", 5),
        ("(program)", 1),
        ("(garbage collector)", 1),
    ]
    assert [leaf.function for leaf in analysis.function_hierarchy.leaf_functions] == [
        "(program)",
        "(garbage collector)",
    ]
    (program,) = analysis.function_hierarchy.root_functions
    assert (program.name, program.self_time, program.children) == ("(program)", 1, [])

    summary = analysis.visual_summary
    assert summary.total_execution_time == 9.0
    assert [(consumer.percentage, consumer.visual_weight) for consumer in summary.top_cpu_consumers] == [
        ("44.44", 44),
        ("22.22", 22),
        ("11.11", 11),
        ("11.11", 11),
    ]
    assert summary.execution_pattern.pattern == "few-hot-functions"


def test_root_function_children_come_from_the_tree() -> None:
    tree, _ = _analyzed_profile()
    analysis = summarize_flamegraph([_function("(root)", "0.00", self_time=0, total_time=9, node_id=1)], 9.0, tree)

    (root,) = analysis.function_hierarchy.root_functions
    assert [(child.name, child.self_time) for child in root.children] == [("main", 2), ("(program)", 1), ("(idle)", 1)]


def test_summary_without_tree() -> None:
    analysis = summarize_flamegraph([_function("(program)", "100.00")], 1.0)
    assert analysis.call_stack.deepest_stacks == []
    assert analysis.function_hierarchy.root_functions[0].children == []


def test_summary_uses_camel_case_keys() -> None:
    tree, functions = _analyzed_profile()
    dumped = summarize_flamegraph(functions, 9.0, tree).model_dump(by_alias=True)

    assert set(dumped) == {"callStack", "hotPaths", "functionHierarchy", "visualSummary"}
    assert set(dumped["callStack"]) == {"deepestStacks", "mostFrequentPaths", "criticalPath"}
    assert set(dumped["visualSummary"]) == {"totalExecutionTime", "topCPUConsumers", "executionPattern"}
    assert set(dumped["hotPaths"][0]) == {"path", "totalTime", "percentage"}
    assert dumped["callStack"]["criticalPath"][0]["selfTime"] == 4
