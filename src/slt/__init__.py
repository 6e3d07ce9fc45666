"""slt: a simple HTTP load tester that holds a fixed request rate."""

from __future__ import annotations

from slt._internal.config import RunConfig
from slt._internal.errors import ConfigError, EngineError, FatalTransportError, SltError
from slt.engine.runner import LoadTestRunner, run_load_test
from slt.engine.scheduler import RateScheduler, partition
from slt.metrics.models import CounterSnapshot, RunSummary

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "CounterSnapshot",
    "EngineError",
    "FatalTransportError",
    "LoadTestRunner",
    "RateScheduler",
    "RunConfig",
    "RunSummary",
    "SltError",
    "partition",
    "run_load_test",
]
