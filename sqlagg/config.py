"""
Configuration module for sqlagg.

Holds the package logger, the engine settings that change query results or
execution strategy (empty-SUM behavior, grouping workers) and the optional
stage profiler.
"""

import logging
import time
from typing import Optional, List, Dict, Any
from contextlib import contextmanager

from .exceptions import ValidationError

LOGGER_NAME = "sqlagg"

LOG_FORMATS = {
    "simple": "%(levelname).1s %(message)s",  # D [3/8] GROUP: 2 groups by ['Dept']
    "verbose": "%(asctime)s %(name)s %(levelname)-7s %(message)s",
}
_VERBOSE_DATEFMT = "%H:%M:%S"

_logger: Optional[logging.Logger] = None
_log_level: int = logging.WARNING
_log_format: str = "simple"


# =============================================================================
# LOGGING
# =============================================================================


def _formatter() -> logging.Formatter:
    if _log_format == "verbose":
        return logging.Formatter(LOG_FORMATS["verbose"], datefmt=_VERBOSE_DATEFMT)
    return logging.Formatter(LOG_FORMATS["simple"])


def get_logger() -> logging.Logger:
    """
    The ``sqlagg`` logger. A stream handler is attached the first time it is
    requested, unless the application already configured one.
    """
    global _logger

    if _logger is None:
        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(_log_level)
        if not logger.handlers:
            stream = logging.StreamHandler()
            stream.setLevel(_log_level)
            stream.setFormatter(_formatter())
            logger.addHandler(stream)
        _logger = logger

    return _logger


def set_log_level(level: int) -> None:
    """
    Set the logging level for sqlagg.

    Example:
        >>> import logging
        >>> from sqlagg import config
        >>> config.set_log_level(logging.DEBUG)  # Log every pipeline stage
    """
    global _log_level

    _log_level = level
    if _logger is None:
        return
    _logger.setLevel(level)
    for h in _logger.handlers:
        h.setLevel(level)


def enable_debug() -> None:
    set_log_level(logging.DEBUG)


def disable_debug() -> None:
    set_log_level(logging.WARNING)


def set_log_format(format_name: str) -> None:
    """Switch log lines between "simple" (default) and "verbose"."""
    global _log_format

    if format_name not in LOG_FORMATS:
        raise ValidationError(f"Unknown log format {format_name!r}. Use one of {sorted(LOG_FORMATS)}")

    _log_format = format_name
    if _logger is not None:
        for h in _logger.handlers:
            h.setFormatter(_formatter())


# =============================================================================
# ENGINE SETTINGS
# =============================================================================


class EmptySum:
    """Result of SUM over a group with no non-NULL input."""

    NULL = "null"  # Standard SQL
    ZERO = "zero"


_EMPTY_SUM_MODES = (EmptySum.NULL, EmptySum.ZERO)

_empty_sum: str = EmptySum.NULL
_workers: int = 1


def get_empty_sum() -> str:
    return _empty_sum


def set_empty_sum(mode: str) -> None:
    """
    Choose what SUM returns when every input value is NULL.

    Example:
        >>> from sqlagg import config
        >>> config.set_empty_sum('zero')  # SUM over all-NULL input -> 0
        >>> config.set_empty_sum('null')  # standard SQL (default)
    """
    global _empty_sum
    if mode not in _EMPTY_SUM_MODES:
        raise ValidationError(f"Unknown empty_sum mode: {mode!r}. Use 'null' or 'zero'")
    _empty_sum = mode


def get_workers() -> int:
    """Number of grouping workers (1 = single-threaded)."""
    return _workers


def set_workers(workers: int) -> None:
    """
    Set the number of partition-parallel grouping workers.

    Rows are hash-partitioned by group key, so partitions never share a group.
    """
    global _workers
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        raise ValidationError(f"workers must be a positive integer, got {workers!r}")
    _workers = workers


class EngineConfig:
    """
    Attribute-style access to every sqlagg setting.

    Example:
        >>> from sqlagg import config
        >>> import logging
        >>>
        >>> config.log_level = logging.DEBUG
        >>> config.empty_sum = 'zero'
        >>> config.workers = 4
    """

    # ========== Logging ==========

    @property
    def log_level(self) -> int:
        return _log_level

    @log_level.setter
    def log_level(self, level: int) -> None:
        set_log_level(level)

    def set_log_level(self, level: int) -> None:
        set_log_level(level)

    def enable_debug(self) -> None:
        enable_debug()

    def disable_debug(self) -> None:
        disable_debug()

    @property
    def log_format(self) -> str:
        return _log_format

    @log_format.setter
    def log_format(self, format_name: str) -> None:
        set_log_format(format_name)

    def set_log_format(self, format_name: str) -> None:
        set_log_format(format_name)

    # ========== Engine ==========

    @property
    def empty_sum(self) -> str:
        return _empty_sum

    @empty_sum.setter
    def empty_sum(self, mode: str) -> None:
        set_empty_sum(mode)

    def set_empty_sum(self, mode: str) -> None:
        set_empty_sum(mode)

    @property
    def workers(self) -> int:
        return _workers

    @workers.setter
    def workers(self, workers: int) -> None:
        set_workers(workers)

    def set_workers(self, workers: int) -> None:
        set_workers(workers)

    # ========== Profiling ==========

    @property
    def profiling_enabled(self) -> bool:
        return _profiling_enabled

    @profiling_enabled.setter
    def profiling_enabled(self, enabled: bool) -> None:
        (enable_profiling if enabled else disable_profiling)()

    def enable_profiling(self) -> None:
        enable_profiling()

    def disable_profiling(self) -> None:
        disable_profiling()

    def get_profiler(self) -> Optional["Profiler"]:
        return get_profiler()

    def reset(self) -> None:
        reset_config()


config = EngineConfig()


def reset_config() -> None:
    """Restore every setting to its default."""
    global _empty_sum, _workers
    _empty_sum = EmptySum.NULL
    _workers = 1
    disable_profiling()
    reset_profiler()
    set_log_format("simple")
    set_log_level(logging.WARNING)


# =============================================================================
# PROFILING
# =============================================================================


class ProfileStep:
    """Wall time of one named step; nested steps hang off ``children``."""

    def __init__(self, name: str, parent: Optional['ProfileStep'] = None, **metadata):
        self.name = name
        self.parent = parent
        self.metadata: Dict[str, Any] = metadata
        self.children: List['ProfileStep'] = []
        self.started = time.perf_counter()
        self.finished: Optional[float] = None

    @property
    def duration_ms(self) -> float:
        end = self.finished if self.finished is not None else time.perf_counter()
        return (end - self.started) * 1000.0

    def walk(self, prefix: str = ""):
        """Yield (dotted name, step) for this step and its descendants."""
        dotted = prefix + self.name
        yield dotted, self
        for child in self.children:
            yield from child.walk(dotted + ".")

    def __repr__(self) -> str:
        return f"ProfileStep({self.name!r}, {self.duration_ms:.2f}ms)"


class Profiler:
    """
    Times the stages of one query execution.

    Usage:
        profiler = Profiler()
        with profiler.step("GROUP", workers=4):
            ...
        print(profiler.report())
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.steps: List[ProfileStep] = []
        self._open: List[ProfileStep] = []

    @contextmanager
    def step(self, name: str, **metadata):
        """Time the enclosed block. Yields None when profiling is disabled."""
        if not self.enabled:
            yield None
            return

        parent = self._open[-1] if self._open else None
        current = ProfileStep(name, parent, **metadata)
        (parent.children if parent is not None else self.steps).append(current)
        self._open.append(current)
        try:
            yield current
        finally:
            current.finished = time.perf_counter()
            self._open.pop()

    def clear(self):
        self.steps = []
        self._open = []

    @property
    def total_duration_ms(self) -> float:
        return sum(s.duration_ms for s in self.steps)

    def summary(self) -> Dict[str, float]:
        """Step name -> duration (ms); nested names are dotted."""
        return {name: s.duration_ms for top in self.steps for name, s in top.walk()}

    def report(self, min_duration_ms: float = 0.0) -> str:
        """Indented timing table of every step at least ``min_duration_ms`` long."""
        if not self.steps:
            return "No profiling data recorded."

        total = self.total_duration_ms
        lines = ["=" * 60, "EXECUTION PROFILE", "=" * 60]
        for top in self.steps:
            for name, s in top.walk():
                if s.duration_ms < min_duration_ms:
                    continue
                depth = name.count(".")
                base = s.parent.duration_ms if s.parent is not None else total
                share = 100.0 * s.duration_ms / base if base else 0.0
                extra = ""
                if s.metadata:
                    extra = " [" + ", ".join(f"{k}={v}" for k, v in s.metadata.items()) + "]"
                lines.append(f"{'  ' * depth}{s.duration_ms:9.3f}ms {share:5.1f}%  {s.name}{extra}")
        lines.append("-" * 60)
        lines.append(f"TOTAL: {total:.3f}ms")
        return "\n".join(lines)

    def log_report(self, min_duration_ms: float = 0.0):
        """Write ``report()`` to the sqlagg logger at INFO."""
        if not (self.enabled and self.steps):
            return
        logger = get_logger()
        for line in self.report(min_duration_ms).splitlines():
            logger.info(line)


_profiling_enabled: bool = False
_current_profiler: Optional[Profiler] = None


def is_profiling_enabled() -> bool:
    return _profiling_enabled


def enable_profiling() -> None:
    """
    Enable stage profiling; each execution records a fresh profile.

    Example:
        >>> from sqlagg import config
        >>> config.enable_profiling()
        >>> query.execute(rows)
        >>> print(config.get_profiler().report())
    """
    global _profiling_enabled
    _profiling_enabled = True


def disable_profiling() -> None:
    global _profiling_enabled
    _profiling_enabled = False


def get_profiler() -> Optional[Profiler]:
    """Profiler of the most recent execution, or None when profiling is off."""
    global _current_profiler
    if not _profiling_enabled:
        return None
    if _current_profiler is None:
        _current_profiler = Profiler()
    return _current_profiler


def new_profiler() -> Profiler:
    """
    Profiler for a new execution.

    Becomes the current profiler when profiling is on; otherwise a disabled
    profiler is returned so callers can use it unconditionally.
    """
    global _current_profiler
    if not _profiling_enabled:
        return Profiler(enabled=False)
    _current_profiler = Profiler()
    return _current_profiler


def reset_profiler() -> None:
    global _current_profiler
    _current_profiler = None
