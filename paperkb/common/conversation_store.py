"""
Conversation Store

Per-conversation chat history, injected into the chat assistant. Sessions
are kept in least-recently-used order and the oldest session is dropped
when the store is over capacity.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class ConversationTurn:
    """One message in a conversation"""
    role: str  # "user" or "assistant"
    content: str
    timestamp: float = field(default_factory=time.time)

    def render(self) -> str:
        return f"{self.role}: {self.content}"


class ConversationStore:
    """Bounded in-memory store of conversation sessions."""

    def __init__(self, max_sessions: int = 1000, max_messages: int = 50):
        self.max_sessions = max_sessions
        self.max_messages = max_messages
        self._sessions: "OrderedDict[str, List[ConversationTurn]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def get_history(self, conversation_id: str, max_turns: int = 3) -> List[ConversationTurn]:
        """Messages of the most recent ``max_turns`` exchanges, oldest first.

        An exchange is one user question and its assistant answer, so the
        window holds up to ``2 * max_turns`` messages and starts on a
        question.
        """
        if not conversation_id or conversation_id not in self._sessions:
            return []
        self._sessions.move_to_end(conversation_id)
        messages = self._sessions[conversation_id]
        if max_turns <= 0:
            return []
        window = messages[-2 * max_turns:]
        # A capped session can begin mid-exchange
        if window and window[0].role == "assistant":
            window = window[1:]
        return list(window)

    def append(self, conversation_id: str, question: str, answer: str) -> None:
        """Record a question/answer exchange."""
        if not conversation_id:
            return
        messages = self._sessions.setdefault(conversation_id, [])
        messages.append(ConversationTurn(role="user", content=question))
        messages.append(ConversationTurn(role="assistant", content=answer))
        del messages[:-self.max_messages]
        self._sessions.move_to_end(conversation_id)

        while len(self._sessions) > self.max_sessions:
            self._sessions.popitem(last=False)

    def clear(self, conversation_id: str) -> bool:
        return self._sessions.pop(conversation_id, None) is not None

    def stats(self) -> Dict[str, int]:
        return {
            "sessions": len(self._sessions),
            "messages": sum(len(m) for m in self._sessions.values()),
        }
