from __future__ import annotations

import re

from infrasys.errors import ConfigParseError

# e.g. us-west-2, eu-central-1, us-gov-west-1, cn-northwest-1
_REGION_RE = re.compile(r"^[a-z]{2}(-[a-z]+)+-\d+$")


def parse_region(region: str) -> str:
    """Return the normalized region name, or raise ConfigParseError."""

    cleaned = (region or "").strip()
    if not _REGION_RE.match(cleaned):
        raise ConfigParseError(f"Unable to parse AWS region: {region!r}")
    return cleaned
