"""AG-UI client side: run requests, dispatchers and the SSE decoder."""

from messenger_gateway.agui.decoder import (
    AssistantMessage,
    DispatchHandlers,
    RunErrorPayload,
    RunLifecycle,
    StreamDecoder,
)
from messenger_gateway.agui.dispatcher import (
    AgentDispatcher,
    HttpAgentDispatcher,
    LoggingAgentDispatcher,
    create_dispatcher,
)
from messenger_gateway.agui.events import RunEvent, RunEventType
from messenger_gateway.agui.request import (
    DispatchContext,
    RunRequest,
    UserMessage,
    build_run_request,
    has_user_messages,
)

__all__ = [
    "AgentDispatcher",
    "AssistantMessage",
    "DispatchContext",
    "DispatchHandlers",
    "HttpAgentDispatcher",
    "LoggingAgentDispatcher",
    "RunErrorPayload",
    "RunEvent",
    "RunEventType",
    "RunLifecycle",
    "RunRequest",
    "StreamDecoder",
    "UserMessage",
    "build_run_request",
    "has_user_messages",
    "create_dispatcher",
]
