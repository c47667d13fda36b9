import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from cpuscope.common.config import config
from cpuscope.errors.profile import MalformedProfileError
from cpuscope.profile.types import CpuProfile

ProfileSource = bytes | str | Path | dict[str, Any]


def _read_json(data: bytes | str | Path) -> Any:
    if isinstance(data, Path):
        data = data.read_bytes()
    try:
        return json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedProfileError(f"not valid JSON ({e})") from e


def load_profile(data: ProfileSource) -> CpuProfile:
    """Parse and validate a raw `.cpuprofile` payload.

    Only structural problems are fatal: `nodes` and `samples` must be present. A missing
    `timeDeltas` array is synthesized from the sample interval.
    """
    raw = data if isinstance(data, dict) else _read_json(data)
    if not isinstance(raw, dict):
        raise MalformedProfileError(f"expected a JSON object, got {type(raw).__name__}")

    for key in ("nodes", "samples"):
        if not isinstance(raw.get(key), list):
            raise MalformedProfileError(f"missing `{key}` array")

    sample_interval = raw.get("sampleInterval") or config.default_sample_interval
    try:
        profile = CpuProfile.model_validate({**raw, "sampleInterval": sample_interval})
    except ValidationError as e:
        raise MalformedProfileError(str(e)) from e

    nb_samples = len(profile.samples)
    if "timeDeltas" not in raw:
        logger.debug(f"Profile has no timeDeltas, assuming a fixed {sample_interval}µs interval")
        profile.time_deltas = [0] + [sample_interval] * max(nb_samples - 1, 0)
    elif len(profile.time_deltas) != nb_samples:
        logger.warning(
            f"Profile has {len(profile.time_deltas)} time deltas for {nb_samples} samples. "
            "Missing deltas count as 0, extra ones are ignored."
        )
        deltas = profile.time_deltas[:nb_samples]
        profile.time_deltas = deltas + [0] * (nb_samples - len(deltas))

    return profile


def load_trace_events(data: bytes | str | Path | list[Any] | dict[str, Any]) -> list[dict[str, Any]] | None:
    """Trace events are optional: anything that is not an event list yields `None`."""
    try:
        raw = data if isinstance(data, (list, dict)) else _read_json(data)
    except MalformedProfileError as e:
        logger.warning(f"Ignoring trace events: {e.dev_message}")
        return None

    if isinstance(raw, dict):
        raw = raw.get("traceEvents")
    if not isinstance(raw, list):
        return None
    return [event for event in raw if isinstance(event, dict)]
