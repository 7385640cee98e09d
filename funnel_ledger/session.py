"""
session.py — Session Manager.

Hands out the session id for the current browsing context. The id is minted once,
parked in the session scope and reused until the context ends. A new context
(new tab, new process) always gets a new id.
"""
import logging
import time
import uuid
from typing import Optional

from funnel_ledger.cache import MemorySessionScope, SessionScope
from funnel_ledger.config import settings

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    """session_{epoch_ms}_{9 random hex chars} — time plus randomness keeps it practically unique."""
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class SessionManager:
    def __init__(
        self,
        scope: Optional[SessionScope] = None,
        key: str = settings.session_key,
    ) -> None:
        self.scope = scope if scope is not None else MemorySessionScope()
        self.key = key

    def get_or_create_session_id(self) -> str:
        session_id = self.scope.get(self.key)
        if not session_id:
            session_id = generate_session_id()
            self.scope.set(self.key, session_id)
            logger.info("Started session session_id=%s", session_id)
        return session_id
