"""
Client library package.
Conversation orchestration against an in-process or remote gateway.
"""

from client.gateway_client import RemoteGateway
from client.orchestrator import ConversationOrchestrator, build_request_history, collapse_runs

__all__ = [
    "RemoteGateway",
    "ConversationOrchestrator",
    "build_request_history",
    "collapse_runs",
]
