from lambdastub.version import __version__

VERSION = __version__

# loopback address the runtime API binds to by default
LOCALHOST_IP = "127.0.0.1"

# default port of the runtime API listener
DEFAULT_PORT_RUNTIME_API = 5387

# version prefix of the Lambda Runtime Interface paths
DEFAULT_RUNTIME_API_VERSION = "2018-06-01"

# environment variable the AWS runtime interface clients read the runtime API address from
ENV_AWS_LAMBDA_RUNTIME_API = "AWS_LAMBDA_RUNTIME_API"

# HTTP headers of the Lambda Runtime Interface
HEADER_REQUEST_ID = "Lambda-Runtime-Aws-Request-Id"
HEADER_DEADLINE_MS = "Lambda-Runtime-Deadline-Ms"
HEADER_INVOKED_FUNCTION_ARN = "Lambda-Runtime-Invoked-Function-Arn"

# default values for the function the invocations are addressed to
DEFAULT_FUNCTION_ARN = "arn:aws:lambda:us-east-1:000000000000:function:test-function"
DEFAULT_FUNCTION_TIMEOUT = 900

# intervals (in seconds) of the long-poll recheck loop and the shutdown drain loop
DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_DRAIN_INTERVAL = 0.01

# error type reported to callers whose invocation was still pending when the runtime API stopped
ERROR_TYPE_RUNTIME_STOPPED = "Runtime.Stopped"

# truthy/falsy values for boolean environment variables
TRUE_STRINGS = ("1", "true", "True")
FALSE_STRINGS = ("0", "false", "False")

# log levels
LOG_LEVELS = ("trace", "debug", "info", "warn", "error", "warning")
LS_LOG_TRACE = "trace"
TRACE_LOG_LEVELS = [LS_LOG_TRACE]
