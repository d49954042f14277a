
from .display_allocator import DisplayAllocator, DisplaySlot
from .dependency_gate import check_dependencies
from .dependency_probe import probe_stream_dependencies, resolve_browser_binary
from .errors import (
    AlreadyRunning,
    DependencyMissing,
    NotRunning,
    PipelineError,
    PlatformUnsupported,
    ProcessStartupFailure,
    ResourceExhausted,
)
from .pipeline_types import (
    DependencyReport,
    HealthEvent,
    HealthSnapshot,
    PipelineConfig,
    PipelineState,
    PipelineTimings,
)
from .stream_pipeline import StreamPipeline

__all__ = [
    'StreamPipeline',
    'PipelineConfig',
    'PipelineTimings',
    'PipelineState',
    'HealthSnapshot',
    'HealthEvent',
    'DependencyReport',
    'DisplayAllocator',
    'DisplaySlot',
    'check_dependencies',
    'probe_stream_dependencies',
    'resolve_browser_binary',
    'PipelineError',
    'PlatformUnsupported',
    'DependencyMissing',
    'ResourceExhausted',
    'ProcessStartupFailure',
    'AlreadyRunning',
    'NotRunning',
]
