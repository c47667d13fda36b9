from collections import defaultdict
from typing import Any, Final

from pydantic import BaseModel, Field

from cpuscope.profile.selector import to_milliseconds

SCRIPT_EVENT_NAMES: Final[tuple[str, ...]] = ("EvaluateScript", "v8.compile", "FunctionCall")
MAX_SCRIPTS: Final[int] = 10


class ScriptEvent(BaseModel):
    name: str
    url: str | None
    start_time: int
    duration: int


class EventTypeSummary(BaseModel):
    count: int = 0
    total_duration_ms: int = 0


class ScriptSummary(BaseModel):
    url: str
    event_count: int
    total_duration_ms: int
    duration_by_type_ms: dict[str, int]
    first_seen_ms: int


class ScriptExecutionAnalysis(BaseModel):
    total_events: int
    total_duration_ms: int
    by_type: dict[str, EventTypeSummary] = Field(default_factory=dict)
    top_scripts: list[ScriptSummary] = Field(default_factory=list)


def _event_url(args: Any) -> str | None:
    if not isinstance(args, dict):
        return None
    data = args.get("data")
    for container in (data, args):
        if isinstance(container, dict):
            for key in ("url", "fileName"):
                value = container.get(key)
                if isinstance(value, str) and value != "":
                    return value
    return None


def extract_script_events(events: list[dict[str, Any]]) -> list[ScriptEvent]:
    script_events: list[ScriptEvent] = []
    for event in events:
        if event.get("name") not in SCRIPT_EVENT_NAMES:
            continue
        script_events.append(
            ScriptEvent(
                name=event["name"],
                url=_event_url(event.get("args")),
                start_time=int(event.get("ts") or 0),
                duration=int(event.get("dur") or 0),
            )
        )
    return script_events


def analyze_trace_events(events: list[dict[str, Any]]) -> ScriptExecutionAnalysis | None:
    """Summarize script evaluation, compilation and function-call events per script url.

    Returns `None` when the trace holds no script events.
    """
    script_events = extract_script_events(events)
    if len(script_events) == 0:
        return None

    by_type: defaultdict[str, list[ScriptEvent]] = defaultdict(list)
    by_url: defaultdict[str, list[ScriptEvent]] = defaultdict(list)
    for event in script_events:
        by_type[event.name].append(event)
        if event.url is not None:
            by_url[event.url].append(event)

    trace_start = min(event.start_time for event in script_events)
    scripts: list[ScriptSummary] = []
    for url, url_events in by_url.items():
        duration_by_type: defaultdict[str, int] = defaultdict(int)
        for event in url_events:
            duration_by_type[event.name] += event.duration
        scripts.append(
            ScriptSummary(
                url=url,
                event_count=len(url_events),
                total_duration_ms=to_milliseconds(sum(duration_by_type.values())),
                duration_by_type_ms={name: to_milliseconds(value) for name, value in duration_by_type.items()},
                first_seen_ms=to_milliseconds(min(event.start_time for event in url_events) - trace_start),
            )
        )
    scripts.sort(key=lambda script: script.total_duration_ms, reverse=True)

    return ScriptExecutionAnalysis(
        total_events=len(script_events),
        total_duration_ms=to_milliseconds(sum(event.duration for event in script_events)),
        by_type={
            name: EventTypeSummary(
                count=len(type_events),
                total_duration_ms=to_milliseconds(sum(event.duration for event in type_events)),
            )
            for name, type_events in by_type.items()
        },
        top_scripts=scripts[:MAX_SCRIPTS],
    )
