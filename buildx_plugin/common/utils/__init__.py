from buildx_plugin.common.utils.retry import (
    RetryConfig,
    async_with_retry,
)
from buildx_plugin.common.utils.file_utils import (
    safe_read_file,
    safe_read_binary,
    ensure_directory,
    write_file,
)
from buildx_plugin.common.utils.time_utils import (
    utc_now,
    to_rfc3339,
    format_duration,
    Timer,
)

__all__ = [
    "RetryConfig",
    "async_with_retry",
    "safe_read_file",
    "safe_read_binary",
    "ensure_directory",
    "write_file",
    "utc_now",
    "to_rfc3339",
    "format_duration",
    "Timer",
]
