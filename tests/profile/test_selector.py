import pytest

from cpuscope.profile.aggregator import aggregate_samples
from cpuscope.profile.loader import load_profile
from cpuscope.profile.selector import (
    format_percentage,
    get_display_name,
    select_top_functions,
    should_ignore_function,
    to_milliseconds,
)
from cpuscope.profile.tree import build_call_tree
from cpuscope.profile.types import CallFrame


@pytest.mark.parametrize(
    "call_frame",
    [
        CallFrame(function_name="foo", url="native dummy.js"),
        CallFrame(function_name="evaluate", url="https://example.com/__puppeteer_evaluation_script___lighthouse-eval.js"),
        CallFrame(function_name="(root)"),
        CallFrame(function_name="(idle)", url=""),
    ],
)
def test_ignored_frames(call_frame: CallFrame) -> None:
    assert should_ignore_function(call_frame)


@pytest.mark.parametrize(
    "call_frame",
    [
        CallFrame(function_name="(program)"),
        CallFrame(function_name="(garbage collector)"),
        CallFrame(function_name="render", url="https://example.com/app.js"),
        CallFrame(function_name="", url="https://example.com/native dummy.js.map"),
    ],
)
def test_kept_frames(call_frame: CallFrame) -> None:
    assert not should_ignore_function(call_frame)


def test_display_name() -> None:
    assert get_display_name(CallFrame(function_name="render", url="https://example.com/app.js")) == "render"
    assert (
        get_display_name(CallFrame(function_name="", url="https://example.com/static/app.js", line_number=41))
        == "(anonymous app.js:42)"
    )
    assert get_display_name(CallFrame(function_name="", url="https://example.com/app.js")) == "(anonymous app.js:1)"
    assert get_display_name(CallFrame()) == "(anonymous)"


def test_percentage_formatting() -> None:
    assert format_percentage(1, 3) == "33.33"
    assert format_percentage(3, 3) == "100.00"
    assert format_percentage(0, 10) == "0.00"
    assert format_percentage(10, 0) == "0.00"


def test_milliseconds_round_half_up() -> None:
    assert to_milliseconds(1500) == 2
    assert to_milliseconds(2500) == 3
    assert to_milliseconds(1499) == 1
    assert to_milliseconds(0) == 0


def _ranked_profile():
    nodes = [
        {"id": 1, "callFrame": {"functionName": "(root)"}, "children": [2, 3, 4, 5, 6]},
        {"id": 2, "callFrame": {"functionName": "small", "url": "https://example.com/a.js", "lineNumber": 3, "columnNumber": 7}},
        {"id": 3, "callFrame": {"functionName": "big", "url": "https://example.com/b.js"}},
        {"id": 4, "callFrame": {"functionName": "(idle)"}},
        {"id": 5, "callFrame": {"functionName": "never-sampled"}},
        {"id": 6, "callFrame": {"functionName": "", "url": ""}},
    ]
    profile = load_profile(
        {
            "nodes": nodes,
            "samples": [2, 3, 3, 3, 4, 4, 6, 2],
            "timeDeltas": [0, 1000, 1000, 1000, 1000, 1000, 1000, 1000],
        }
    )
    aggregation = aggregate_samples(profile)
    return build_call_tree(profile, aggregation), aggregation.total_time


def test_select_top_functions_ranks_by_self_time() -> None:
    tree, total_time = _ranked_profile()
    functions = select_top_functions(tree, total_time)

    assert [func.function_name for func in functions] == ["big", "small", "(anonymous)"]
    big, small, anonymous = functions
    assert big.self_time == 3
    assert big.percentage == "42.86"
    assert big.hit_count == 1
    assert anonymous.url == "(unknown)"
    assert small.line_number == 4
    assert small.column_number == 8
    assert small.location == "https://example.com/a.js:4"
    assert small.percentage == "14.29"
    assert small.hit_count == 2


def test_select_top_functions_limit() -> None:
    tree, total_time = _ranked_profile()
    assert [func.function_name for func in select_top_functions(tree, total_time, limit=1)] == ["big"]


def test_select_top_functions_zero_limit() -> None:
    tree, total_time = _ranked_profile()
    assert select_top_functions(tree, total_time, limit=0) == []
    assert len(select_top_functions(tree, total_time, limit=None)) == 3


def test_percentages_are_zero_without_elapsed_time() -> None:
    tree, _ = _ranked_profile()
    for func in select_top_functions(tree, 0):
        assert func.percentage == "0.00"
