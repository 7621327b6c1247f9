"""Service layer utilities consolidating reusable business logic."""

from .network_manager import network_manager
from .chat_service import chat_completion_service

__all__ = [
    "network_manager",
    "chat_completion_service",
]
