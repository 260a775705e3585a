from .config import Settings, load_settings
from .errors import (
    ConversionFailed,
    ErrorRecord,
    InvalidArgument,
    InvalidManifest,
    NetworkFailed,
    RequestCancelled,
    ResolutionError,
    ResourceNotFound,
    RunnerError,
    error_record_from_exc,
)
from .fs import atomic_write_bytes, atomic_write_text, safe_unlink
from .hashing import fingerprint, sha256_bytes
from .json import atomic_write_json, stable_json_dumps
from .logging import bind, configure_logging, get_logger
from .provenance import Timer, new_run_id
from .time import format_duration_ms, monotonic_ms, utc_now_iso

__all__ = [
    "atomic_write_bytes",
    "atomic_write_json",
    "atomic_write_text",
    "bind",
    "configure_logging",
    "ConversionFailed",
    "error_record_from_exc",
    "ErrorRecord",
    "fingerprint",
    "format_duration_ms",
    "get_logger",
    "InvalidArgument",
    "InvalidManifest",
    "load_settings",
    "monotonic_ms",
    "NetworkFailed",
    "new_run_id",
    "RequestCancelled",
    "ResolutionError",
    "ResourceNotFound",
    "RunnerError",
    "safe_unlink",
    "Settings",
    "sha256_bytes",
    "stable_json_dumps",
    "Timer",
    "utc_now_iso",
]
