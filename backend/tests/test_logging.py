"""Tests for structured logging configuration."""

import logging

from assistlink.core.logging import (
    RequestContextFilter,
    actor_id_ctx,
    bind_actor,
    request_id_ctx,
    setup_logging,
    user_agent_ctx,
)


def _record(lineno: int = 10) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname=__file__,
        lineno=lineno,
        msg="hello",
        args=(),
        exc_info=None,
    )


def test_request_context_filter_injects_fields():
    record = _record()

    token_id = request_id_ctx.set("req-123")
    token_agent = user_agent_ctx.set("pytest-agent")
    token_actor = actor_id_ctx.set("user-42")
    try:
        context_filter = RequestContextFilter()
        assert context_filter.filter(record) is True
        assert record.request_id == "req-123"
        assert record.user_agent == "pytest-agent"
        assert record.actor_id == "user-42"
    finally:
        request_id_ctx.reset(token_id)
        user_agent_ctx.reset(token_agent)
        actor_id_ctx.reset(token_actor)


def test_bind_actor_sets_context():
    token = actor_id_ctx.set("-")
    try:
        bind_actor("6f1c")
        record = _record()
        RequestContextFilter().filter(record)
        assert record.actor_id == "6f1c"
    finally:
        actor_id_ctx.reset(token)


def test_setup_logging_attaches_json_handler():
    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level

    try:
        setup_logging()
        assert root_logger.handlers, "expected a handler after setup"
        handler = root_logger.handlers[0]
        filters = handler.filters
        assert any(isinstance(filter_, RequestContextFilter) for filter_ in filters)
        # Ensure formatter renders request fields even when unset.
        record = _record(lineno=42)
        for filter_ in filters:
            filter_.filter(record)
        formatted = handler.format(record)
        assert "request_id" in formatted
        assert "user_agent" in formatted
        assert "actor_id" in formatted
    finally:
        root_logger.handlers = original_handlers
        root_logger.setLevel(original_level)
