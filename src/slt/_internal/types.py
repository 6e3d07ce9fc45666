"""Shared type aliases for slt."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

# HTTP headers mapping (read-only once a run starts).
Headers = Mapping[str, str]

# Status codes counted as a successful response.
OkCodes = frozenset[int]

# Strategy for splitting the per-second rate into worker batches.
PartitionMode = Literal["reference", "even"]
