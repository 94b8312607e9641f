"""
Two-tier traffic-dispatch fabric simulation: admission filter, per-class
autoscaling dispatchers and stateful workers, driven one tick at a time.
"""

from .admission import AddressRange, AdmissionFilter, ip_to_uint, parse_cidr, parse_ipv4
from .config import DEFAULT_BLOCKED_RANGES, SimConfig, load_config
from .coordinator import Coordinator, RunReport, build_arrival_source, run_simulation, split_by_class
from .dispatcher import Dispatcher
from .errors import AddressParseError, ConfigError, FabricSimError, WorkerBusyError
from .events import EventKind, LoggingEventSink, MultiSink, RecordingEventSink, SimEvent
from .request_generator import (
    BurstArrivalSource,
    JobClass,
    ReplayArrivalSource,
    Request,
    generate_requests,
    load_arrival_trace,
)
from .worker import Worker
from . import metrics, policies

__all__ = [
    "AddressRange",
    "AdmissionFilter",
    "ip_to_uint",
    "parse_cidr",
    "parse_ipv4",
    "DEFAULT_BLOCKED_RANGES",
    "SimConfig",
    "load_config",
    "Coordinator",
    "RunReport",
    "build_arrival_source",
    "run_simulation",
    "split_by_class",
    "Dispatcher",
    "AddressParseError",
    "ConfigError",
    "FabricSimError",
    "WorkerBusyError",
    "EventKind",
    "LoggingEventSink",
    "MultiSink",
    "RecordingEventSink",
    "SimEvent",
    "BurstArrivalSource",
    "JobClass",
    "ReplayArrivalSource",
    "Request",
    "generate_requests",
    "load_arrival_trace",
    "Worker",
    "metrics",
    "policies",
]
