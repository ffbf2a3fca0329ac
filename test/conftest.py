import logging

import pytest
import requests

from fakes import RecordingHandler, SleepRecorder
from vitals_pipeline.logger import LOGGER_NAME


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection reset")


@pytest.fixture
def log_records():
    """LogRecords emitted on the pipeline logger (it does not propagate to root)."""
    handler = RecordingHandler()
    pipeline_logger = logging.getLogger(LOGGER_NAME)
    pipeline_logger.addHandler(handler)
    yield handler.records
    pipeline_logger.removeHandler(handler)
