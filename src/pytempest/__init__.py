"""pytempest - Async Python client for WeatherFlow Tempest station telemetry."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pytempest")
except PackageNotFoundError:
    __version__ = "0+local"
from pytempest._api.observations import SnapshotClient
from pytempest._api.stations import DeviceResolver
from pytempest._stream import ConnectionState, ReconnectOutcome, StreamingClient
from pytempest.arbiter import FreshnessArbiter, FreshnessDecision
from pytempest.client import TempestClient
from pytempest.config import TempestConfig
from pytempest.exceptions import (
    TempestApiError,
    TempestConfigError,
    TempestError,
    TempestRateLimitError,
    TempestTransportError,
)
from pytempest.ingestion.observation import normalize
from pytempest.models import (
    DerivedMetrics,
    Device,
    DeviceBinding,
    PrecipitationType,
    SnapshotObservation,
    Station,
    StationMetadata,
    StreamRecord,
    raw_observation_from_payload,
)
from pytempest.state.events import (
    ConnectedEvent,
    DisconnectedEvent,
    ErrorEvent,
    ErrorKind,
    ObservationEvent,
    ObservationSource,
)

__all__ = [
    "__version__",
    "ConnectedEvent",
    "ConnectionState",
    "DerivedMetrics",
    "Device",
    "DeviceBinding",
    "DeviceResolver",
    "DisconnectedEvent",
    "ErrorEvent",
    "ErrorKind",
    "FreshnessArbiter",
    "FreshnessDecision",
    "ObservationEvent",
    "ObservationSource",
    "PrecipitationType",
    "ReconnectOutcome",
    "SnapshotClient",
    "SnapshotObservation",
    "Station",
    "StationMetadata",
    "StreamRecord",
    "StreamingClient",
    "TempestApiError",
    "TempestClient",
    "TempestConfig",
    "TempestConfigError",
    "TempestError",
    "TempestRateLimitError",
    "TempestTransportError",
    "normalize",
    "raw_observation_from_payload",
]
