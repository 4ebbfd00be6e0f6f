"""
Default values for client configuration.

These constants are only used as defaults for ``ClientConfig`` and
``BackoffParameters``. Override them per client through the config object
rather than by mutating this module.

All durations are in seconds.
"""

# Maximum time an operation may spend retrying: 4 minutes
MAX_OPERATION_TIMEOUT = 240.0

# Exponential backoff constants, normal conditions
DEFAULT_BACKOFF_C = 0.1
DEFAULT_BACKOFF_C_MIN = 0.1
DEFAULT_BACKOFF_C_MAX = 10.0
DEFAULT_JITTER_UP = 0.25
DEFAULT_JITTER_DOWN = 0.5

# Exponential backoff constants, when the service is throttling
THROTTLED_BACKOFF_C = 5.0
THROTTLED_BACKOFF_C_MIN = 10.0
THROTTLED_BACKOFF_C_MAX = 60.0

# Diagnostic sampling
DIAGNOSTIC_SAMPLING_WINDOW = 100
DIAGNOSTIC_ID_LENGTH = 8

# Environment variables read by ClientConfig.from_env()
ENV_PREFIX = "IOTHUB_DEVICE_"
ENV_MAX_OPERATION_TIMEOUT = ENV_PREFIX + "MAX_OPERATION_TIMEOUT"
ENV_IMMEDIATE_FIRST_RETRY = ENV_PREFIX + "IMMEDIATE_FIRST_RETRY"
ENV_DIAGNOSTIC_SAMPLING_PERCENTAGE = ENV_PREFIX + "DIAGNOSTIC_SAMPLING_PERCENTAGE"
ENV_PRODUCT_INFO = ENV_PREFIX + "PRODUCT_INFO"
