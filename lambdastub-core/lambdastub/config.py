import logging
import os
from typing import Any, List, Optional, Tuple, Union

from lambdastub.constants import (
    DEFAULT_DRAIN_INTERVAL,
    DEFAULT_FUNCTION_ARN,
    DEFAULT_FUNCTION_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_PORT_RUNTIME_API,
    DEFAULT_RUNTIME_API_VERSION,
    ENV_AWS_LAMBDA_RUNTIME_API,
    FALSE_STRINGS,
    LOCALHOST_IP,
    LOG_LEVELS,
    TRACE_LOG_LEVELS,
    TRUE_STRINGS,
)


def eval_log_type(env_var_name: str) -> Union[str, bool]:
    """Get the log type from environment variable"""
    ls_log = os.environ.get(env_var_name, "").lower().strip()
    return ls_log if ls_log in LOG_LEVELS else False


def parse_boolean_env(env_var_name: str) -> Optional[bool]:
    """Parse the value of the given env variable and return True/False, or None if it is not a boolean value."""
    value = os.environ.get(env_var_name, "").lower().strip()
    if value in TRUE_STRINGS:
        return True
    if value in FALSE_STRINGS:
        return False
    return None


def is_env_true(env_var_name: str) -> bool:
    """Whether the given environment variable has a truthy value."""
    return os.environ.get(env_var_name, "").lower().strip() in TRUE_STRINGS


def is_env_not_false(env_var_name: str) -> bool:
    """Whether the given environment variable is empty or has a truthy value."""
    return os.environ.get(env_var_name, "").lower().strip() not in FALSE_STRINGS


def parse_float_env(env_var_name: str, default: float) -> float:
    """Parse the value of the given env variable as a positive float, falling back to ``default`` if unset."""
    value = os.environ.get(env_var_name, "").strip()
    if not value:
        return default
    try:
        result = float(value)
    except ValueError as e:
        raise ValueError(f"{env_var_name}={value} is not a number") from e
    if result <= 0:
        raise ValueError(f"{env_var_name} must be greater than zero, got {value}")
    return result


class HostAndPort:
    """
    Definition of an address for a server to listen to.

    Includes a `parse` method to convert from `str`, allowing for default fallbacks, as well as
    some helper methods to help tests - particularly testing for equality and a hash function
    so that `HostAndPort` instances can be used as keys to dictionaries.
    """

    host: str
    port: int

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port

    @classmethod
    def parse(
        cls,
        input: str,
        default_host: str,
        default_port: int,
    ) -> "HostAndPort":
        """
        Parse a `HostAndPort` from strings like:
            - 127.0.0.1:5387 -> host=127.0.0.1, port=5387
            - 127.0.0.1      -> host=127.0.0.1, port=`default_port`
            - :5387          -> host=`default_host`, port=5387
        """
        host, port = default_host, default_port
        if ":" in input:
            hostname, port_s = input.split(":", 1)
            if hostname.strip():
                host = hostname.strip()
            try:
                port = int(port_s)
            except ValueError as e:
                raise ValueError(f"specified port {port_s} not a number") from e
        else:
            if input.strip():
                host = input.strip()

        # validation
        if port < 0 or port >= 2**16:
            raise ValueError("port out of range")

        return cls(host=host, port=port)

    def host_and_port(self):
        return f"{self.host}:{self.port}" if self.port is not None else self.host

    def __hash__(self) -> int:
        return hash((self.host, self.port))

    # easier tests
    def __eq__(self, other: "str | HostAndPort") -> bool:
        if isinstance(other, self.__class__):
            return self.host == other.host and self.port == other.port
        elif isinstance(other, str):
            return str(self) == other
        else:
            raise TypeError(f"cannot compare {self.__class__} to {other.__class__}")

    def __str__(self) -> str:
        return self.host_and_port()

    def __repr__(self) -> str:
        return f"HostAndPort(host={self.host}, port={self.port})"


DEFAULT_ENCODING = "utf-8"

# log level of lambdastub itself (trace, debug, info, warn, error)
LAMBDASTUB_LOG = eval_log_type("LAMBDASTUB_LOG")
DEBUG = is_env_true("DEBUG") or LAMBDASTUB_LOG in TRACE_LOG_LEVELS

# address the runtime API binds to. loopback by default, the endpoint must never be reachable off-host
RUNTIME_API_LISTEN = HostAndPort.parse(
    os.environ.get("RUNTIME_API_LISTEN", ""),
    default_host=LOCALHOST_IP,
    default_port=DEFAULT_PORT_RUNTIME_API,
)

# path prefix of the runtime API routes (e.g., /2018-06-01/runtime/invocation/next)
RUNTIME_API_VERSION = (
    os.environ.get("RUNTIME_API_VERSION", "").strip().strip("/") or DEFAULT_RUNTIME_API_VERSION
)

# how long (in seconds) a blocked poll waits for an item before rechecking the lifecycle state
RUNTIME_API_POLL_INTERVAL = parse_float_env("RUNTIME_API_POLL_INTERVAL", DEFAULT_POLL_INTERVAL)

# how often (in seconds) stop() checks whether all blocked polls have been released
RUNTIME_API_DRAIN_INTERVAL = parse_float_env("RUNTIME_API_DRAIN_INTERVAL", DEFAULT_DRAIN_INTERVAL)

# key under which the bound address is published on start
RUNTIME_API_CONFIG_KEY = (
    os.environ.get("RUNTIME_API_CONFIG_KEY", "").strip() or ENV_AWS_LAMBDA_RUNTIME_API
)

# whether the published address is also exported into the process environment
RUNTIME_API_PUBLISH_ENV = is_env_not_false("RUNTIME_API_PUBLISH_ENV")

# values sent along with each invocation in the runtime API headers
LAMBDA_FUNCTION_ARN = os.environ.get("LAMBDA_FUNCTION_ARN", "").strip() or DEFAULT_FUNCTION_ARN
LAMBDA_FUNCTION_TIMEOUT = int(
    parse_float_env("LAMBDA_FUNCTION_TIMEOUT", float(DEFAULT_FUNCTION_TIMEOUT))
)


def is_trace_logging_enabled():
    if LAMBDASTUB_LOG:
        log_level = str(LAMBDASTUB_LOG).upper()
        return log_level.lower() in TRACE_LOG_LEVELS
    return False


# set log levels immediately, but will be overwritten later by setup_logging
if DEBUG:
    logging.getLogger("").setLevel(logging.DEBUG)
    logging.getLogger("lambdastub").setLevel(logging.DEBUG)

CONFIG_ENV_VARS = [
    "DEBUG",
    "LAMBDASTUB_LOG",
    "LAMBDA_FUNCTION_ARN",
    "LAMBDA_FUNCTION_TIMEOUT",
    "RUNTIME_API_CONFIG_KEY",
    "RUNTIME_API_DRAIN_INTERVAL",
    "RUNTIME_API_LISTEN",
    "RUNTIME_API_POLL_INTERVAL",
    "RUNTIME_API_PUBLISH_ENV",
    "RUNTIME_API_VERSION",
]
"""The environment variables lambdastub reads its configuration from."""



def collect_config_items() -> List[Tuple[str, Any]]:
    """Returns a list of key-value tuples of the lambdastub configuration values."""
    none = object()  # sentinel object
    values = globals()

    result = []
    for k in sorted(CONFIG_ENV_VARS):
        v = values.get(k, none)
        if v is none:
            continue
        result.append((k, v))
    return result
