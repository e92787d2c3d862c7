"""Tunable settings for the structuring engine."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_ATTRIBUTION_PHRASE = "This teaching is adapted from The Christian Theologist"
DEFAULT_CALLOUT_PREFIXES = ("key takeaways", "appendix")
DEFAULT_RUN_ON_LIMIT = 800
DEFAULT_CHUNK_TARGET = 500


@dataclass(frozen=True)
class StructureOptions:
    """Settings threaded through the pipeline.

    Instances are hashable so a document can be memoised on
    ``(raw, options)``.
    """

    attribution_phrase: str = DEFAULT_ATTRIBUTION_PHRASE
    callout_prefixes: tuple[str, ...] = DEFAULT_CALLOUT_PREFIXES
    run_on_limit: int = DEFAULT_RUN_ON_LIMIT
    chunk_target: int = DEFAULT_CHUNK_TARGET


def _resolve_int(value: int | None, env_name: str, default: int) -> int:
    if value is not None:
        return max(value, 1)
    env_value = os.environ.get(env_name)
    if env_value:
        try:
            return max(int(env_value), 1)
        except ValueError:
            logger.debug("Invalid %s value: %s", env_name, env_value)
    return default


def resolve_attribution_phrase(value: str | None) -> str:
    if value and value.strip():
        return value.strip()
    env_value = os.environ.get("TEACHING_ATTRIBUTION_PHRASE")
    if env_value and env_value.strip():
        return env_value.strip()
    return DEFAULT_ATTRIBUTION_PHRASE


def resolve_options(
    *,
    attribution_phrase: str | None = None,
    run_on_limit: int | None = None,
    chunk_target: int | None = None,
) -> StructureOptions:
    """Build options from explicit values, then environment, then defaults."""
    return StructureOptions(
        attribution_phrase=resolve_attribution_phrase(attribution_phrase),
        run_on_limit=_resolve_int(run_on_limit, "TEACHING_RUN_ON_LIMIT", DEFAULT_RUN_ON_LIMIT),
        chunk_target=_resolve_int(chunk_target, "TEACHING_CHUNK_TARGET", DEFAULT_CHUNK_TARGET),
    )
