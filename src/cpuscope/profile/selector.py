import math
from typing import Final

from cpuscope.common.config import config
from cpuscope.profile.tree import CallTree
from cpuscope.profile.types import AggregatedFunction, CallFrame

# V8 uses this file as a placeholder frame to avoid some edge cases in its builtins.
# See: https://github.com/v8/v8/blob/b8626ca4/tools/js2c.py#L419-L424
V8_DUMMY_URL: Final[str] = "native dummy.js"
# Script injected by Lighthouse while auditing a page
LIGHTHOUSE_EVAL_MARKER: Final[str] = "_lighthouse-eval.js"
SYNTHETIC_FUNCTION_NAMES: Final[frozenset[str]] = frozenset({"(root)", "(idle)"})


def should_ignore_function(call_frame: CallFrame) -> bool:
    if call_frame.url == V8_DUMMY_URL:
        return True
    if LIGHTHOUSE_EVAL_MARKER in call_frame.url:
        return True
    return call_frame.function_name in SYNTHETIC_FUNCTION_NAMES


def get_display_name(call_frame: CallFrame) -> str:
    if call_frame.function_name != "":
        return call_frame.function_name

    if call_frame.url != "":
        file_name = call_frame.url.rstrip("/").split("/")[-1] or "unknown"
        return f"(anonymous {file_name}:{call_frame.line_number + 1})"

    return "(anonymous)"


def to_milliseconds(microseconds: float) -> int:
    # round half up
    return math.floor(microseconds / 1000 + 0.5)


def format_percentage(part: float, total: float) -> str:
    if total <= 0:
        return "0.00"
    return f"{min(max(part / total * 100, 0.0), 100.0):.2f}"


def select_top_functions(tree: CallTree, total_time: int, limit: int | None = None) -> list[AggregatedFunction]:
    """
    Rank sampled nodes by self time, excluding V8 internals, instrumentation and synthetic frames.

    `total_time` is the aggregator's elapsed time in microseconds, used for the percentages.
    """
    if limit is None:
        limit = config.top_functions_limit
    candidates = [node for node in tree if node.hit_count > 0 and not should_ignore_function(node.call_frame)]
    # sorted() is stable: equal self times keep profile order
    ranked = sorted(candidates, key=lambda node: node.self_time, reverse=True)[:limit]

    return [
        AggregatedFunction(
            node_id=node.id,
            function_name=get_display_name(node.call_frame),
            url=node.call_frame.url or "(unknown)",
            line_number=node.call_frame.line_number + 1,
            column_number=node.call_frame.column_number + 1,
            self_time=to_milliseconds(node.self_time),
            total_time=to_milliseconds(node.total_time),
            hit_count=node.hit_count,
            percentage=format_percentage(node.self_time, total_time),
        )
        for node in ranked
    ]
