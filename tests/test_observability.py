"""Tests for the request observers."""

import logging

import esrepo.observability
from esrepo.observability import LoggingRequestObserver, NullRequestObserver


def test_module_documented():
    assert esrepo.observability.__doc__.lstrip().startswith("esrepo Observability")


def test_logs_endpoint_and_body_at_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="esrepo.observability"):
        LoggingRequestObserver().on_request("search", "/people/_search", {"size": 10})

    assert "search: /people/_search" in caplog.text
    assert '"size": 10' in caplog.text


def test_silent_above_debug(caplog):
    with caplog.at_level(logging.INFO, logger="esrepo.observability"):
        LoggingRequestObserver().on_request("get", "/people/_doc/1")

    assert caplog.text == ""


def test_null_observer_ignores_requests():
    assert NullRequestObserver().on_request("get", "/people/_doc/1") is None
