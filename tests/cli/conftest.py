import functools
import logging

import click.testing
import pytest

from kubegate._cogs.structs.credentials import ConnectionInfo
from kubegate.cli import main


@pytest.fixture(autouse=True)
def _restored_root_logger():
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level
    try:
        yield
    finally:
        logger.handlers[:] = handlers
        logger.setLevel(level)


@pytest.fixture()
def runner():
    runner = click.testing.CliRunner()
    return runner


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def login(mocker):
    info = ConnectionInfo(server='https://hub.example.com', default_namespace='default')
    return mocker.patch('kubegate._core.intents.piggybacking.login', return_value=info)


@pytest.fixture()
def fetch_namespace(mocker):
    return mocker.patch('kubegate.cli.fetch_namespace', return_value=(
        {'metadata': {'name': 'default', 'uid': 'uid-raw'}},
        {'metadata': {'name': 'default', 'uid': 'uid-obj'}},
    ))


@pytest.fixture()
def watch_pods(mocker):
    return mocker.patch('kubegate.cli.watch_pods', return_value=None)
