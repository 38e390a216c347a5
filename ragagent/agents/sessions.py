# =============================================================================
# Conversation Sessions — Stateful Conversation Reuse
# =============================================================================
#
# Stateless runs create a fresh conversation per query. Stateful runs keep
# one conversation per (session, expert) so the hosted agent sees earlier
# turns.
#
# Sessions are scoped to a caller-supplied session id, never to the
# process: two users do not share conversational memory. Each session
# holds an asyncio.Lock so only one run at a time uses its conversation.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict

from ragagent.services.agent_client import AgentServiceClient

logger = logging.getLogger(__name__)


class ConversationSession:
    """One conversation, created on first use and then reused."""

    def __init__(self, conversation_id: str | None = None) -> None:
        self.conversation_id = conversation_id
        self.lock = asyncio.Lock()

    async def ensure(self, client: AgentServiceClient) -> str:
        """Return the conversation id, creating the conversation if needed."""
        if self.conversation_id is None:
            self.conversation_id = await client.create_conversation()
            logger.info("Created session conversation: %s", self.conversation_id)
        return self.conversation_id


class SessionStore:
    """
    In-memory map of session id → per-agent ConversationSession.

    Bounded: the least recently used session is evicted once max_sessions
    is exceeded. Evicted conversations are simply forgotten.
    """

    def __init__(self, max_sessions: int = 1000) -> None:
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[str, dict[str, ConversationSession]] = (
            OrderedDict()
        )

    def get(self, session_id: str, agent_name: str) -> ConversationSession:
        agents = self._sessions.get(session_id)
        if agents is None:
            agents = {}
            self._sessions[session_id] = agents
            if len(self._sessions) > self._max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info("Evicted conversation session: %s", evicted)
        else:
            self._sessions.move_to_end(session_id)

        session = agents.get(agent_name)
        if session is None:
            session = ConversationSession()
            agents[agent_name] = session
        return session

    def __len__(self) -> int:
        return len(self._sessions)
