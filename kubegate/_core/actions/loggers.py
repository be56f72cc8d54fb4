"""
Logging setup: formats, per-cluster prefixes, JSON output.

The long-living activities (e.g. the informers) log via a :class:`ClusterLogger`,
which carries the target cluster's name with every record. The name is then
rendered either as a prefix of the message (``[west-1] Cache is synced.``),
or as a separate field in the JSON logs (``{"cluster": "west-1", ...}``).
"""
import copy
import enum
import logging
from typing import TYPE_CHECKING, Any, Dict, MutableMapping, Optional, TextIO, Tuple, Union

# Luckily, we do not mock these ones in tests, so we can import them into our namespace.
try:
    # python-json-logger>=3.1.0
    from pythonjsonlogger.core import RESERVED_ATTRS as _pjl_RESERVED_ATTRS
    from pythonjsonlogger.json import JsonFormatter as _pjl_JsonFormatter
except ImportError:
    # python-json-logger<3.1.0
    from pythonjsonlogger.jsonlogger import JsonFormatter as _pjl_JsonFormatter  # type: ignore
    from pythonjsonlogger.jsonlogger import RESERVED_ATTRS as _pjl_RESERVED_ATTRS  # type: ignore

from kubegate._cogs.helpers import typedefs

# A key for the cluster names in JSON logs, as seen by the log parsers.
DEFAULT_JSON_REFKEY = 'cluster'


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = '-json-'  # not used for formatting, only for detection


class ClusterFormatter(logging.Formatter):
    pass


class ClusterTextFormatter(ClusterFormatter, logging.Formatter):
    pass


class ClusterJsonFormatter(ClusterFormatter, _pjl_JsonFormatter):
    def __init__(
            self,
            *args: Any,
            refkey: Optional[str] = None,
            **kwargs: Any,
    ) -> None:
        # Avoid type checking, as the args are not in the parent consructor.
        reserved_attrs = kwargs.pop('reserved_attrs', _pjl_RESERVED_ATTRS)
        reserved_attrs = set(reserved_attrs)
        reserved_attrs |= {'k8s_cluster'}
        kwargs.update(reserved_attrs=reserved_attrs)
        kwargs.setdefault('timestamp', True)
        super().__init__(*args, **kwargs)
        self._refkey: str = refkey or DEFAULT_JSON_REFKEY

    def add_fields(
            self,
            log_record: Dict[str, Any],
            record: logging.LogRecord,
            message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        cluster = getattr(record, 'k8s_cluster', None)
        if self._refkey and cluster:
            log_record[self._refkey] = cluster

        if 'severity' not in log_record:
            log_record['severity'] = (
                "debug" if record.levelno <= logging.DEBUG else
                "info" if record.levelno <= logging.INFO else
                "warn" if record.levelno <= logging.WARNING else
                "error" if record.levelno <= logging.ERROR else
                "fatal")


class ClusterPrefixingMixin(ClusterFormatter):
    def format(self, record: logging.LogRecord) -> str:
        cluster = getattr(record, 'k8s_cluster', None)
        if cluster:
            record = copy.copy(record)  # shallow
            record.msg = f"[{cluster}] {record.msg}"
        return super().format(record)


class ClusterPrefixingTextFormatter(ClusterPrefixingMixin, ClusterTextFormatter):
    pass


class ClusterPrefixingJsonFormatter(ClusterPrefixingMixin, ClusterJsonFormatter):
    pass


class ClusterLogger(typedefs.LoggerAdapter):
    """
    A logger/adapter to carry the target cluster's name for formatting.

    ``None`` stands for the unrouted requests, i.e. for the hub itself,
    and is not rendered at all.
    """

    def __init__(
            self,
            *,
            cluster: Optional[str],
            logger: Union[logging.Logger, None] = None,
    ) -> None:
        base = logger if logger is not None else logging.getLogger('kubegate.clusters')
        super().__init__(base, dict(k8s_cluster=cluster))

    @property
    def cluster(self) -> Optional[str]:
        return (self.extra or {}).get('k8s_cluster')

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> Tuple[str, MutableMapping[str, Any]]:
        # Native logging overwrites the message's extra with the adapter's extra.
        # We merge them, so that both message's & adapter's extras are available.
        kwargs["extra"] = dict(self.extra or {}, **kwargs.get('extra', {}))
        return msg, kwargs


# Used to identify and remove our own handlers on re-runs, e.g. in the CLI tests,
# where the previous handlers can stream into the closed stderr interceptors of Click.
if TYPE_CHECKING:
    class _KubegateStreamHandler(logging.StreamHandler[TextIO]):
        pass
else:
    class _KubegateStreamHandler(logging.StreamHandler):
        pass


def configure(
        debug: Optional[bool] = None,
        verbose: Optional[bool] = None,
        quiet: Optional[bool] = None,
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = None,
        log_refkey: Optional[str] = None,
) -> None:
    log_level = 'DEBUG' if debug or verbose else 'WARNING' if quiet else 'INFO'
    formatter = make_formatter(log_format=log_format, log_prefix=log_prefix, log_refkey=log_refkey)
    handler = _KubegateStreamHandler()
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.handlers[:] = [h for h in logger.handlers if not isinstance(h, _KubegateStreamHandler)]
    logger.addHandler(handler)
    logger.setLevel(log_level)

    # Prevent the low-level logging unless in the debug mode. Keep only our own messages.
    # For no-propagation loggers, add a dummy null handler to prevent printing the messages.
    for name in ['asyncio']:
        logger = logging.getLogger(name)
        logger.propagate = bool(debug)
        if not debug:
            logger.handlers[:] = [logging.NullHandler()]


def make_formatter(
        log_format: Union[str, LogFormat] = LogFormat.FULL,
        log_prefix: Optional[bool] = None,
        log_refkey: Optional[str] = None,
) -> ClusterFormatter:
    log_prefix = log_prefix if log_prefix is not None else bool(log_format is not LogFormat.JSON)
    if log_format is LogFormat.JSON:
        if log_prefix:
            return ClusterPrefixingJsonFormatter(refkey=log_refkey)
        else:
            return ClusterJsonFormatter(refkey=log_refkey)
    elif isinstance(log_format, LogFormat):
        if log_prefix:
            return ClusterPrefixingTextFormatter(log_format.value)
        else:
            return ClusterTextFormatter(log_format.value)
    elif isinstance(log_format, str):
        if log_prefix:
            return ClusterPrefixingTextFormatter(log_format)
        else:
            return ClusterTextFormatter(log_format)
    else:
        raise ValueError(f"Unsupported log format: {log_format!r}")
