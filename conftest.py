"""Root conftest.py for seppuku tests.

Provides fixtures shared by every test module.
"""

import pytest
from unittest.mock import MagicMock


@pytest.fixture
def mock_logger():
    """Create a mock logger satisfying LoggerProtocol.

    ``bind`` returns the same mock so assertions can be made on the
    logger a component ends up using.
    """
    logger = MagicMock()
    logger.info = MagicMock()
    logger.debug = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.exception = MagicMock()
    logger.bind = MagicMock(return_value=logger)
    return logger
