"""Run configuration and flag parsing for slt."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from yarl import URL

from slt._internal.errors import ConfigError

if TYPE_CHECKING:
    from slt._internal.types import Headers, OkCodes, PartitionMode

DEFAULT_MAX_REQUESTS_PER_WORKER = 20
DEFAULT_REPORT_INTERVAL = 5.0
DEFAULT_OUTCOME_QUEUE_SIZE = 1

_PARTITION_MODES = ("reference", "even")

# Control characters other than tab are never valid in a header field
_FORBIDDEN_HEADER_CHARS = frozenset(chr(c) for c in (*range(0x20), 0x7F)) - {"\t"}


@dataclass(frozen=True)
class EngineDefaults:
    """Process-wide engine tuning, read from the environment.

    Attributes:
        max_requests_per_worker: Cap on the batch size of a single worker.
        report_interval: Seconds between progress log lines.
        outcome_queue_size: Capacity of the outcome channel.
    """

    max_requests_per_worker: int = DEFAULT_MAX_REQUESTS_PER_WORKER
    report_interval: float = DEFAULT_REPORT_INTERVAL
    outcome_queue_size: int = DEFAULT_OUTCOME_QUEUE_SIZE


@dataclass(frozen=True)
class RunConfig:
    """Immutable configuration of a single load test run.

    Built once before the run starts and never mutated afterwards. Use
    :meth:`create` to build a validated instance from loosely typed input.

    Attributes:
        url: Target URL for every request.
        headers: Additional request headers (read-only).
        ok_codes: Status codes counted as a successful response.
        requests_per_second: Target rate. Zero schedules empty batches.
        timeout_seconds: Upper bound for one HTTP exchange.
        max_requests_per_worker: Per-worker batch cap.
        tick_interval: Seconds between scheduler ticks.
        report_interval: Seconds between progress log lines.
        partition: ``"reference"`` keeps the historical batch formula,
            ``"even"`` spreads the rate exactly across workers.
        max_in_flight_batches: Cap on concurrently running batches. None
            derives a cap from the rate and timeout.
        duration_seconds: Optional wall-clock limit. None runs until a
            fatal transport error or external termination.
        outcome_queue_size: Capacity of the outcome channel.
    """

    url: str
    headers: Headers = field(default_factory=lambda: MappingProxyType({}))
    ok_codes: OkCodes = frozenset({200})
    requests_per_second: int = 1
    timeout_seconds: float = 10.0
    max_requests_per_worker: int = DEFAULT_MAX_REQUESTS_PER_WORKER
    tick_interval: float = 1.0
    report_interval: float = DEFAULT_REPORT_INTERVAL
    partition: PartitionMode = "reference"
    max_in_flight_batches: int | None = None
    duration_seconds: float | None = None
    outcome_queue_size: int = DEFAULT_OUTCOME_QUEUE_SIZE

    @classmethod
    def create(
        cls,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        ok_codes: Iterable[int] = (200,),
        defaults: EngineDefaults | None = None,
        **kwargs: object,
    ) -> RunConfig:
        """Build and validate a configuration.

        Headers are copied into a read-only mapping and ok codes into a
        frozenset, so later changes to the caller's objects have no effect.

        Args:
            url: Target URL.
            headers: Additional request headers.
            ok_codes: Status codes considered successful.
            defaults: Engine tuning. Defaults to ``EngineDefaults()``.
            **kwargs: Any other ``RunConfig`` field.

        Returns:
            A validated RunConfig.

        Raises:
            ConfigError: If any value is invalid.
        """
        defaults = defaults or EngineDefaults()
        kwargs.setdefault("max_requests_per_worker", defaults.max_requests_per_worker)
        kwargs.setdefault("report_interval", defaults.report_interval)
        kwargs.setdefault("outcome_queue_size", defaults.outcome_queue_size)
        try:
            config = cls(
                url=url,
                headers=MappingProxyType(dict(headers or {})),
                ok_codes=frozenset(ok_codes),
                **kwargs,  # type: ignore[arg-type]
            )
        except TypeError as exc:
            raise ConfigError(str(exc)) from None
        config.validate()
        return config

    def validate(self) -> None:
        """Check every field is within its accepted range.

        Raises:
            ConfigError: On the first invalid value found.
        """
        validate_url(self.url)
        for name, value in self.headers.items():
            check_header(name, value)
        if not self.ok_codes:
            msg = "at least one OK status code is required"
            raise ConfigError(msg)
        for code in self.ok_codes:
            if not 100 <= code <= 599:
                msg = f"OK status codes must be between 100 and 599, got: {code}"
                raise ConfigError(msg)
        if self.requests_per_second < 0:
            msg = f"requests per second must be >= 0, got: {self.requests_per_second}"
            raise ConfigError(msg)
        if self.timeout_seconds <= 0:
            msg = f"timeout must be positive, got: {self.timeout_seconds}"
            raise ConfigError(msg)
        if self.max_requests_per_worker < 1:
            msg = f"max requests per worker must be >= 1, got: {self.max_requests_per_worker}"
            raise ConfigError(msg)
        if self.tick_interval <= 0:
            msg = f"tick interval must be positive, got: {self.tick_interval}"
            raise ConfigError(msg)
        if self.report_interval <= 0:
            msg = f"report interval must be positive, got: {self.report_interval}"
            raise ConfigError(msg)
        if self.partition not in _PARTITION_MODES:
            msg = f"partition must be one of {_PARTITION_MODES}, got: {self.partition!r}"
            raise ConfigError(msg)
        if self.max_in_flight_batches is not None and self.max_in_flight_batches < 1:
            msg = f"max in-flight batches must be >= 1, got: {self.max_in_flight_batches}"
            raise ConfigError(msg)
        if self.duration_seconds is not None and self.duration_seconds <= 0:
            msg = f"duration must be positive, got: {self.duration_seconds}"
            raise ConfigError(msg)
        if self.outcome_queue_size < 1:
            msg = f"outcome queue size must be >= 1, got: {self.outcome_queue_size}"
            raise ConfigError(msg)


def validate_url(value: str) -> URL:
    """Parse a target URL, requiring an http(s) scheme and a host.

    Args:
        value: Raw URL string.

    Returns:
        The parsed URL.

    Raises:
        ConfigError: If the string is not an absolute http(s) URL.
    """
    try:
        url = URL(value)
    except (TypeError, ValueError) as exc:
        msg = f"unable to parse {value!r} to a valid URL: {exc}"
        raise ConfigError(msg) from None
    if url.scheme not in ("http", "https") or not url.host:
        msg = f"unable to parse {value!r} to a valid http(s) URL"
        raise ConfigError(msg)
    return url


def check_header(name: str, value: str) -> None:
    """Reject header names or values that would break the request line.

    Raises:
        ConfigError: If the name is empty or either part holds a control
            character such as CR or LF.
    """
    if not name:
        msg = "header name must not be empty"
        raise ConfigError(msg)
    if _FORBIDDEN_HEADER_CHARS.intersection(name + value):
        msg = f"header {name!r} contains a control character"
        raise ConfigError(msg)


def parse_headers(values: Iterable[str]) -> dict[str, str]:
    """Parse ``key=value`` header flags into a mapping.

    Each value may hold several comma-separated pairs. Later occurrences of
    a key replace earlier ones.

    Args:
        values: Raw flag values, e.g. ``["Accept=text/html,X-Id=7"]``.

    Returns:
        Header name to value mapping.

    Raises:
        ConfigError: If a pair has no ``=``, an empty name or a control
            character.
    """
    headers: dict[str, str] = {}
    for value in values:
        for pair in value.split(","):
            if not pair.strip():
                continue
            key, sep, val = pair.partition("=")
            key = key.strip()
            if not sep or not key:
                msg = f"header must be in key=value form, got: {pair!r}"
                raise ConfigError(msg)
            val = val.strip()
            check_header(key, val)
            headers[key] = val
    return headers


def parse_ok_codes(values: Iterable[str]) -> frozenset[int]:
    """Parse status code flags (``200`` or ``200,204``) into a set.

    Args:
        values: Raw flag values.

    Returns:
        The set of status codes.

    Raises:
        ConfigError: If an entry is not an integer.
    """
    codes: set[int] = set()
    for value in values:
        for item in value.split(","):
            item = item.strip()
            if not item:
                continue
            try:
                codes.add(int(item))
            except ValueError:
                msg = f"OK code must be an integer, got: {item!r}"
                raise ConfigError(msg) from None
    return frozenset(codes)


def load_config() -> EngineDefaults:
    """Load engine tuning from environment variables with defaults.

    Environment variables:
        SLT_MAX_REQUESTS_PER_WORKER: Per-worker batch cap (default: 20).
        SLT_REPORT_INTERVAL: Seconds between progress lines (default: 5.0).
        SLT_OUTCOME_QUEUE_SIZE: Outcome channel capacity (default: 1).

    Returns:
        Populated EngineDefaults instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    cap_str = os.environ.get("SLT_MAX_REQUESTS_PER_WORKER", str(DEFAULT_MAX_REQUESTS_PER_WORKER))
    interval_str = os.environ.get("SLT_REPORT_INTERVAL", str(DEFAULT_REPORT_INTERVAL))
    queue_str = os.environ.get("SLT_OUTCOME_QUEUE_SIZE", str(DEFAULT_OUTCOME_QUEUE_SIZE))

    try:
        cap = int(cap_str)
    except ValueError:
        msg = f"SLT_MAX_REQUESTS_PER_WORKER must be an integer, got: {cap_str!r}"
        raise ConfigError(msg) from None

    if cap < 1:
        msg = f"SLT_MAX_REQUESTS_PER_WORKER must be >= 1, got: {cap}"
        raise ConfigError(msg)

    try:
        interval = float(interval_str)
    except ValueError:
        msg = f"SLT_REPORT_INTERVAL must be a number, got: {interval_str!r}"
        raise ConfigError(msg) from None

    if interval <= 0:
        msg = f"SLT_REPORT_INTERVAL must be positive, got: {interval}"
        raise ConfigError(msg)

    try:
        queue_size = int(queue_str)
    except ValueError:
        msg = f"SLT_OUTCOME_QUEUE_SIZE must be an integer, got: {queue_str!r}"
        raise ConfigError(msg) from None

    if queue_size < 1:
        msg = f"SLT_OUTCOME_QUEUE_SIZE must be >= 1, got: {queue_size}"
        raise ConfigError(msg)

    return EngineDefaults(
        max_requests_per_worker=cap,
        report_interval=interval,
        outcome_queue_size=queue_size,
    )
