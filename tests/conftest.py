import logging

import pytest


@pytest.fixture(autouse=True)
def reset_logging_handler():
    """Drop the handler the command line entry points install on the root logger."""

    yield
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if handler.get_name() == "position_journal":
            root_logger.removeHandler(handler)
