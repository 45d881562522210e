"""
sdk.logging tests: name detection, structured fields, configuration
"""

import logging

from sdk.logging import configureLogging, getLogger
from sdk.logging.logger import StructuredFormatter


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class Dimmer:
    def __init__(self):
        self.log = getLogger()


class TestLogger:

    def test_name_detected_from_class(self):
        dimmer = Dimmer()

        assert dimmer.log.name.endswith('.Dimmer')

    def test_explicit_name(self):
        assert getLogger('wotkit.test.explicit').name == 'wotkit.test.explicit'

    def test_structured_fields_reach_record(self):
        log = getLogger('wotkit.test.fields')
        handler = ListHandler()
        log.addHandler(handler)
        try:
            log.warning("Listening", port=8888, name='lamp')
        finally:
            log.removeHandler(handler)

        record = handler.records[-1]
        assert record.port == 8888
        # Reserved LogRecord attributes are renamed rather than rejected
        assert record.name_ == 'lamp'
        assert record.name == 'wotkit.test.fields'

    def test_formatter_appends_fields(self):
        record = logging.LogRecord('wotkit.x', logging.INFO, __file__, 1, 'Started', None, None)
        record.port = 8888

        text = StructuredFormatter('%(name)s - %(levelname)s - %(message)s').format(record)

        assert text == 'wotkit.x - INFO - Started [port=8888]'
        assert record.msg == 'Started'

    def test_configure_reapplies_level(self):
        log = getLogger('wotkit.test.level')
        try:
            configureLogging(level='DEBUG')
            assert log.level == logging.DEBUG
        finally:
            configureLogging(level='INFO')
        assert log.level == logging.INFO

    def test_log_directory(self, tmp_path):
        try:
            configureLogging(logDir=str(tmp_path), console=False)
            log = getLogger('filetest.component')
            log.info("Written to file", seq=1)
            for handler in log.handlers:
                handler.flush()
        finally:
            configureLogging()

        content = (tmp_path / 'filetest.log').read_text()
        assert 'Written to file [seq=1]' in content
