"""Sentry SDK integration for perfagent.

This module provides:
- Opt-in Sentry initialization with asyncio and logging integrations
- Agent context and tags for filtering events
- Breadcrumbs for delivery outcomes

Usage:
    from perfagent.sentry import init_sentry, set_agent_context

    if config.sentry.active:
        init_sentry(dsn=config.sentry.dsn, environment=config.sentry.environment)
        set_agent_context(config)
"""

from __future__ import annotations

import logging
import os
import platform
from typing import TYPE_CHECKING, Any

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from perfagent import __version__

if TYPE_CHECKING:
    from perfagent.config import Config
    from perfagent.delivery import DeliveryOutcome


def init_sentry(
    *,
    dsn: str,
    environment: str = "production",
    traces_sample_rate: float = 0.0,
    debug: bool = False,
) -> None:
    """Initialize Sentry SDK for the agent.

    Configures Sentry with:
    - AsyncioIntegration for errors in sampling and delivery tasks
    - LoggingIntegration: INFO+ as breadcrumbs, ERROR+ as events
    - Default tags for version, OS and architecture

    Args:
        dsn: Sentry DSN; there is no built-in default
        environment: Environment name attached to events
        traces_sample_rate: Sample rate for performance traces (0.0-1.0)
        debug: Enable Sentry debug mode for troubleshooting
    """
    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=f"perfagent@{__version__}",
        traces_sample_rate=traces_sample_rate,
        debug=debug,
        send_default_pii=False,
        integrations=[
            AsyncioIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        before_send=_before_send,
    )

    sentry_sdk.set_tag("app.version", __version__)
    sentry_sdk.set_tag("python.version", platform.python_version())
    sentry_sdk.set_tag("os.name", platform.system())
    sentry_sdk.set_tag("os.version", platform.release())
    sentry_sdk.set_tag("arch", platform.machine())


def _before_send(
    event: dict[str, Any],
    hint: dict[str, Any],
) -> dict[str, Any] | None:
    """Drop shutdown interrupts and attach the working directory."""
    if "exc_info" in hint:
        exc_type, _, _ = hint["exc_info"]
        if exc_type is KeyboardInterrupt:
            return None

    event.setdefault("extra", {})["cwd"] = os.getcwd()
    return event


def set_agent_context(config: Config, *, config_path: str | None = None) -> None:
    """Attach the pipeline settings to every event.

    Args:
        config: Effective agent configuration
        config_path: Path to the config file, if one was used
    """
    context: dict[str, Any] = {
        "interval": config.sampling.interval,
        "batch_size": config.sampling.batch_size,
        "include_network": config.sampling.include_network,
        "server_url": config.delivery.server_url,
        "compress": config.delivery.compress,
    }
    if config_path is not None:
        context["config_path"] = config_path
        sentry_sdk.set_tag("perfagent.custom_config", "true")

    sentry_sdk.set_tag("perfagent.batch_size", str(config.sampling.batch_size))
    sentry_sdk.set_context("perfagent", context)


async def record_delivery_outcome(outcome: DeliveryOutcome) -> None:
    """Leave a breadcrumb for one delivery attempt.

    Registered as a Transmitter outcome callback; failures themselves are
    already logged at ERROR and reach Sentry through the logging integration.
    """
    sentry_sdk.add_breadcrumb(
        category="delivery",
        message="batch delivered" if outcome.success else "batch not delivered",
        level="info" if outcome.success else "error",
        data={
            "batch_size": outcome.batch_size,
            "status": outcome.status,
            "elapsed_ms": round(outcome.elapsed_ms, 1),
        },
    )
