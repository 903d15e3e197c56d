"""Detection package integration helpers exposed to the application."""

from botwatch.detection.api import router
from botwatch.detection.domain.container import build_container, build_store, configure, shutdown
from botwatch.detection.middleware.bot_check import BotDetection, check_bot_behavior

__all__ = [
    "router",
    "build_container",
    "build_store",
    "configure",
    "shutdown",
    "BotDetection",
    "check_bot_behavior",
]
