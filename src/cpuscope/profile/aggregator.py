from collections import defaultdict
from collections.abc import Sequence

from cpuscope.profile.types import CollapsedSamples, CpuProfile, SampleAggregation


def collapse_samples(samples: Sequence[int], time_deltas: Sequence[int]) -> CollapsedSamples:
    """
    Collapse consecutive identical samples into timed visits.

    The Chrome CPU profile format doesn't collapse identical samples, so a function that ran
    for 50 sampling intervals shows up as 50 consecutive entries. Each run becomes one visit
    starting at the time of its first sample.

    Recorded deltas can be negative (clock artifacts). The effective timeline is clamped so
    that sample times never decrease: a clock that went backward reuses the last retained time.
    """
    collapsed = CollapsedSamples()
    if len(samples) == 0:
        return collapsed

    elapsed = time_deltas[0]
    last_valid_elapsed = elapsed
    last_node_id: int | None = None

    for i, node_id in enumerate(samples):
        if node_id != last_node_id:
            collapsed.node_ids.append(node_id)
            if elapsed < last_valid_elapsed:
                collapsed.sample_times.append(last_valid_elapsed)
            else:
                collapsed.sample_times.append(elapsed)
                last_valid_elapsed = elapsed

        if i < len(samples) - 1:
            elapsed += time_deltas[i + 1]
            last_node_id = node_id

    # flush: the trailing run ends at the last sample's time, even when it repeats the previous id
    # no extra entry is pushed for the flush, so the trailing run counts one hit, not two (call_count)
    collapsed.end_time = max(elapsed, last_valid_elapsed)
    return collapsed


def aggregate_samples(profile: CpuProfile) -> SampleAggregation:
    """Attribute the collapsed timeline to nodes as self time and hit counts."""
    collapsed = collapse_samples(profile.samples, profile.time_deltas)
    self_times: defaultdict[int, int] = defaultdict(int)
    hit_counts: defaultdict[int, int] = defaultdict(int)

    times = collapsed.sample_times
    for i, node_id in enumerate(collapsed.node_ids):
        next_time = times[i + 1] if i + 1 < len(times) else collapsed.end_time
        self_times[node_id] += next_time - times[i]
        hit_counts[node_id] += 1

    return SampleAggregation(
        collapsed=collapsed,
        self_times=dict(self_times),
        hit_counts=dict(hit_counts),
        total_time=collapsed.total_time,
    )
