"""
Diagnostic sink for messages emitted by the TensorRT builder and runtime.

Only error and internal-error severities are forwarded by default. The sink
is a plain object with ``log(severity, message)`` so it can be replaced in
tests; ``as_trt_logger()`` wraps it in a ``trt.ILogger`` when the backend
needs one.
"""
import logging

from .utils import import_tensorrt

# Same ordering as trt.ILogger.Severity
INTERNAL_ERROR = 0
ERROR = 1
WARNING = 2
INFO = 3
VERBOSE = 4

_LEVELS = {
    INTERNAL_ERROR: logging.CRITICAL,
    ERROR: logging.ERROR,
    WARNING: logging.WARNING,
    INFO: logging.INFO,
    VERBOSE: logging.DEBUG,
}

_default_logger = None


class DiagnosticLogger:
    """
    Severity filter in front of a ``logging.Logger``

    Args:
        min_severity: Most verbose severity still forwarded (ERROR keeps
            ERROR and INTERNAL_ERROR)
        name: Target logger name
    """

    def __init__(self, min_severity=ERROR, name='trt_parser.trt'):
        self.min_severity = int(min_severity)
        self.logger = logging.getLogger(name)
        self.counts = {}
        self._trt_logger = None

    def log(self, severity, message):
        severity = int(severity)
        if severity > self.min_severity:
            return
        self.counts[severity] = self.counts.get(severity, 0) + 1
        self.logger.log(_LEVELS.get(severity, logging.ERROR), message)

    def error_count(self):
        return self.counts.get(ERROR, 0) + self.counts.get(INTERNAL_ERROR, 0)

    def as_trt_logger(self):
        """Return a cached ``trt.ILogger`` forwarding to this sink."""
        if self._trt_logger is None:
            trt = import_tensorrt()
            sink = self

            class _TrtLogger(trt.ILogger):
                def __init__(self):
                    trt.ILogger.__init__(self)

                def log(self, severity, msg):
                    sink.log(severity, msg)

            # TensorRT keeps only a raw pointer; the Python object must outlive it
            self._trt_logger = _TrtLogger()
        return self._trt_logger


def get_default_logger():
    """Process-wide sink used when no logger is injected."""
    global _default_logger
    if _default_logger is None:
        _default_logger = DiagnosticLogger()
    return _default_logger
