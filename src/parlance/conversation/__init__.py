from .actions import (
    Action,
    ActionAck,
    ActionDispatcher,
    CopyText,
    EditMessage,
    ExecuteCode,
    RateMessage,
    Regenerate,
)
from .events import (
    AssistantMessageReady,
    Event,
    EventStream,
    ExecutionStatusChanged,
    Failed,
    FragmentDecoded,
    Processing,
    Subscription,
)
from .models import ChatMessage, Conversation, Role
from .orchestrator import ConversationOrchestrator, OrchestratorStatus, Turn, TurnOutcome, TurnState

__all__ = [
    "Action",
    "ActionAck",
    "ActionDispatcher",
    "AssistantMessageReady",
    "ChatMessage",
    "Conversation",
    "ConversationOrchestrator",
    "CopyText",
    "EditMessage",
    "Event",
    "EventStream",
    "ExecuteCode",
    "ExecutionStatusChanged",
    "Failed",
    "FragmentDecoded",
    "OrchestratorStatus",
    "Processing",
    "RateMessage",
    "Regenerate",
    "Role",
    "Subscription",
    "Turn",
    "TurnOutcome",
    "TurnState",
]
