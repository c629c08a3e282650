"""Lua script resources executed atomically by the Redis quota store."""

from __future__ import annotations

from importlib import resources

LIMITER_SCRIPT = "limiter.lua"
LIMITER_RULE_BATCH_SET_SCRIPT = "limiter_rule_batch_set.lua"
LIMITER_RULE_QUERY_SCRIPT = "limiter_rule_query.lua"

SCRIPT_NAMES: tuple[str, ...] = (
    LIMITER_SCRIPT,
    LIMITER_RULE_BATCH_SET_SCRIPT,
    LIMITER_RULE_QUERY_SCRIPT,
)


def load_script(name: str) -> str:
    """Read a bundled Lua script body.

    Args:
        name: File name under ``quota_api/adapters/quota/lua``.

    Returns:
        Script source.

    Raises:
        FileNotFoundError: If no script with that name is bundled.
    """
    resource = resources.files("quota_api.adapters.quota").joinpath("lua").joinpath(name)
    return resource.read_text(encoding="utf-8")
