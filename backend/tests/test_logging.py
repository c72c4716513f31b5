"""Tests for the structured operation logger."""

import logging

from crudforge.log import OperationLogger, configure_logging, get_logger


def test_fields_rendered_and_attached(caplog):
    log = get_logger("crudforge.test", handler="pet")
    with caplog.at_level(logging.INFO, logger="crudforge.test"):
        log.bind(method="Read").info("pet rendered", id=3)
    record = caplog.records[-1]
    assert record.getMessage() == "pet rendered handler=pet method=Read id=3"
    assert record.fields == {"handler": "pet", "method": "Read", "id": 3}


def test_bind_does_not_mutate_parent(caplog):
    parent = get_logger("crudforge.test", handler="pet")
    parent.bind(method="Create")
    with caplog.at_level(logging.INFO, logger="crudforge.test"):
        parent.info("hello")
    assert caplog.records[-1].fields == {"handler": "pet"}


def test_standard_kwargs_pass_through(caplog):
    log = OperationLogger(logging.getLogger("crudforge.test"))
    with caplog.at_level(logging.ERROR, logger="crudforge.test"):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            log.error("failed", exc_info=True, extra={"request": "r1"}, id=9)
    record = caplog.records[-1]
    assert record.exc_info is not None
    assert record.request == "r1"
    assert record.fields == {"id": 9}


def test_percent_args(caplog):
    log = get_logger("crudforge.test")
    with caplog.at_level(logging.INFO, logger="crudforge.test"):
        log.info("loaded %d entities", 3)
    assert caplog.records[-1].getMessage() == "loaded 3 entities"


def test_level_filtering(caplog):
    log = get_logger("crudforge.test")
    with caplog.at_level(logging.WARNING, logger="crudforge.test"):
        log.info("quiet", id=1)
    assert caplog.records == []


def test_configure_logging_from_env(monkeypatch):
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))
    monkeypatch.setenv("CRUDFORGE_LOG_LEVEL", "debug")
    configure_logging()
    assert calls["level"] == logging.DEBUG
    configure_logging("error")
    assert calls["level"] == logging.ERROR
