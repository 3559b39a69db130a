"""
Logging of the client: per-endpoint loggers and the formatters for them.

Every endpoint logs via its own adapter, which carries the endpoint's
identification (the API version and the resource) in the records' extras.
The formatters then render it either as a prefix of the text messages,
or as a separate field of the JSON records.

The configuration is only a convenience for the CLI and for the scripts:
as a library, the client does not configure the logging by itself.
"""
import copy
import enum
import logging
from typing import Any, Dict, Mapping, MutableMapping, Optional, Tuple, Union

# The module was moved in python-json-logger 3.1.0; the old one is deprecated there.
try:
    from pythonjsonlogger.core import RESERVED_ATTRS as _pjl_RESERVED_ATTRS
    from pythonjsonlogger.json import JsonFormatter as _pjl_JsonFormatter
except ImportError:
    from pythonjsonlogger.jsonlogger import JsonFormatter as _pjl_JsonFormatter  # type: ignore
    from pythonjsonlogger.jsonlogger import RESERVED_ATTRS as _pjl_RESERVED_ATTRS  # type: ignore

from kubeclient._cogs.helpers import typedefs

logger = logging.getLogger('kubeclient.endpoints')

# The record's extra with the endpoint's identification, and its key in the JSON logs.
REF_ATTR = 'kc_ref'
DEFAULT_JSON_REFKEY = 'endpoint'


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = '-json-'  # not used for formatting, only for detection


def render_ref(ref: Mapping[str, Any]) -> str:
    """ E.g. ``v1/pods`` or ``extensions/v1beta1/deployments/scale``. """
    parts = [ref.get('version'), ref.get('resource'), ref.get('child')]
    return '/'.join(str(part) for part in parts if part)


class EndpointTextFormatter(logging.Formatter):
    """ Text logs, with the endpoint in front of the message unless disabled. """

    def __init__(self, fmt: Optional[str] = None, *, prefix: bool = True, **kwargs: Any) -> None:
        super().__init__(fmt, **kwargs)
        self.prefix = prefix

    def format(self, record: logging.LogRecord) -> str:
        ref = getattr(record, REF_ATTR, None)
        if self.prefix and ref:
            record = copy.copy(record)  # other handlers must see the original message.
            record.msg = f"[{render_ref(ref)}] {record.msg}"
        return super().format(record)


class EndpointJsonFormatter(_pjl_JsonFormatter):
    """ JSON logs, with the endpoint as a field and a severity for the log collectors. """

    def __init__(self, *args: Any, refkey: Optional[str] = None, **kwargs: Any) -> None:
        kwargs['reserved_attrs'] = set(kwargs.pop('reserved_attrs', _pjl_RESERVED_ATTRS)) | {REF_ATTR}
        kwargs.setdefault('timestamp', True)
        super().__init__(*args, **kwargs)
        self.refkey: str = refkey or DEFAULT_JSON_REFKEY

    def add_fields(
            self,
            log_record: Dict[str, Any],
            record: logging.LogRecord,
            message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        ref = getattr(record, REF_ATTR, None)
        if ref is not None:
            log_record[self.refkey] = ref

        log_record.setdefault('severity', (
            "debug" if record.levelno <= logging.DEBUG else
            "info" if record.levelno <= logging.INFO else
            "warn" if record.levelno <= logging.WARNING else
            "error" if record.levelno <= logging.ERROR else
            "fatal"))


EndpointFormatter = Union[EndpointTextFormatter, EndpointJsonFormatter]


class EndpointLogger(typedefs.LoggerAdapter):
    """
    A logger/adapter to carry the endpoint's identifiers for formatting.

    Constructed once per endpoint (including the nested ones),
    and used for all requests and watch-sessions of that endpoint.
    """

    def __init__(
            self,
            *,
            resource: str,
            version: Optional[str] = None,
            child: Optional[str] = None,
    ) -> None:
        ref = {'version': version, 'resource': resource, 'child': child}
        super().__init__(logger, {REF_ATTR: ref})

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> Tuple[str, MutableMapping[str, Any]]:
        # The adapter's extra would replace the call's extra; keep both.
        kwargs['extra'] = dict(self.extra or {}, **kwargs.get('extra', {}))
        return msg, kwargs


def configure(
        debug: Optional[bool] = None,
        verbose: Optional[bool] = None,
        quiet: Optional[bool] = None,
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = None,
        log_refkey: Optional[str] = None,
) -> None:
    """
    Log to stderr from all loggers, replacing the handlers of the previous calls.
    """
    formatter = make_formatter(log_format=log_format, log_prefix=log_prefix, log_refkey=log_refkey)
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    # The old handlers can have their streams closed already (e.g. by click's test runner).
    root = logging.getLogger()
    root.handlers[:] = [h for h in root.handlers if not is_own_handler(h)]
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug or verbose else logging.WARNING if quiet else logging.INFO)

    # The event loop's own messages are only interesting when debugging.
    loop_logger = logging.getLogger('asyncio')
    loop_logger.propagate = bool(debug)
    if not debug:
        loop_logger.handlers[:] = [logging.NullHandler()]


def is_own_handler(handler: logging.Handler) -> bool:
    return (isinstance(handler, logging.StreamHandler) and
            isinstance(handler.formatter, (EndpointTextFormatter, EndpointJsonFormatter)))


def make_formatter(
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: Optional[bool] = None,
        log_refkey: Optional[str] = None,
) -> EndpointFormatter:
    """
    The JSON logs have the endpoint in a field (``log_refkey``), never in a prefix.
    The text logs are prefixed with the endpoint unless ``log_prefix`` is false.
    """
    if log_format is LogFormat.JSON:
        return EndpointJsonFormatter(refkey=log_refkey)
    elif isinstance(log_format, LogFormat):
        return EndpointTextFormatter(log_format.value, prefix=log_prefix is not False)
    else:
        raise ValueError(f"Unsupported log format: {log_format!r}")
