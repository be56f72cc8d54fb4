import logging

import pytest

from kubegate._core.actions.loggers import ClusterJsonFormatter, ClusterPrefixingJsonFormatter, \
                                           ClusterPrefixingTextFormatter, ClusterTextFormatter, \
                                           LogFormat, configure, make_formatter


def _get_own_handlers():
    return [handler for handler in logging.getLogger().handlers
            if handler.__class__.__name__ == '_KubegateStreamHandler']


@pytest.mark.parametrize('kwargs, level', [
    (dict(), logging.INFO),
    (dict(verbose=True), logging.DEBUG),
    (dict(debug=True), logging.DEBUG),
    (dict(quiet=True), logging.WARNING),
])
def test_levels(kwargs, level):
    configure(**kwargs)
    assert logging.getLogger().level == level


def test_handlers_are_replaced_on_reconfiguration():
    configure()
    configure()
    assert len(_get_own_handlers()) == 1


def test_asyncio_is_silenced_unless_debugging():
    configure(verbose=True)
    assert not logging.getLogger('asyncio').propagate
    configure(debug=True)
    assert logging.getLogger('asyncio').propagate


@pytest.mark.parametrize('log_format, log_prefix, cls', [
    (LogFormat.PLAIN, None, ClusterPrefixingTextFormatter),
    (LogFormat.FULL, None, ClusterPrefixingTextFormatter),
    (LogFormat.FULL, False, ClusterTextFormatter),
    (LogFormat.JSON, None, ClusterJsonFormatter),
    (LogFormat.JSON, True, ClusterPrefixingJsonFormatter),
    ('%(message)s', None, ClusterPrefixingTextFormatter),
])
def test_formatters(log_format, log_prefix, cls):
    formatter = make_formatter(log_format=log_format, log_prefix=log_prefix)
    assert type(formatter) is cls


def test_unsupported_formats():
    with pytest.raises(ValueError):
        make_formatter(log_format=object())
