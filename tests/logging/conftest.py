import logging

import pytest


@pytest.fixture(autouse=True)
def _caplog_all_levels(caplog):
    caplog.set_level(0)


@pytest.fixture(autouse=True)
def _restored_root_logger():
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level
    asyncio_logger = logging.getLogger('asyncio')
    asyncio_handlers = list(asyncio_logger.handlers)
    asyncio_propagate = asyncio_logger.propagate
    try:
        yield
    finally:
        logger.handlers[:] = handlers
        logger.setLevel(level)
        asyncio_logger.handlers[:] = asyncio_handlers
        asyncio_logger.propagate = asyncio_propagate
