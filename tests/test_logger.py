from __future__ import annotations

import logging

from yzx.logger import LogManager, configure_logging, get_log_manager, init_log_manager, logger
from yzx.settings import LoggingSettings, LogLevel


def test_log_manager_captures_yzx_records() -> None:
    manager = init_log_manager(max_entries=None)
    assert isinstance(manager, LogManager)
    assert get_log_manager() is manager
    # Attaching twice must not duplicate the handler.
    init_log_manager()

    configure_logging(LoggingSettings(default_level=LogLevel.debug))
    manager.clear()
    logger.debug("probe.event", key="value")

    records = manager.get_records()
    assert len(records) == 1
    assert records[0].logger_name == "yzx"
    assert records[0].level == logging.DEBUG
    assert "probe.event" in records[0].message
    assert "key=value" in records[0].message


def test_configure_logging_levels() -> None:
    configure_logging(
        LoggingSettings(
            default_level=LogLevel.warning,
            enabled_loggers={"yzx.test.other": LogLevel.error},
        )
    )
    assert logging.getLogger("yzx").level == logging.WARNING
    assert logging.getLogger("yzx.test.other").level == logging.ERROR

    manager = init_log_manager()
    manager.clear()
    logger.info("filtered")
    logger.warning("kept")
    messages = [r.message for r in manager.get_records()]
    assert not any("filtered" in m for m in messages)
    assert any("kept" in m for m in messages)

    # None leaves levels untouched.
    configure_logging(None)
    assert logging.getLogger("yzx").level == logging.WARNING


def test_log_manager_caps_entries() -> None:
    manager = LogManager(max_entries=2)
    for i in range(3):
        manager.add_record(
            logging.LogRecord("yzx", logging.INFO, __file__, 1, f"m{i}", None, None)
        )
    assert [r.message for r in manager.get_records()] == ["m1", "m2"]
