"""
Conversation orchestrator.

Owns the active session's live message list and the request lifecycle:
sends turns through a streaming gateway, accumulates the streamed reply,
handles abort/retry, and reconciles results into the session store.

The gateway is anything exposing
    start_stream(history, new_parts, model_id) -> AsyncIterator[str]
i.e. the in-process StreamingGateway or a RemoteGateway.

Execution is single-threaded on the event loop. At most one request is
in flight; aborting cancels the consumer task and keeps partial output.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence

from config import Settings
from errors import ChatError, InvalidRequestError, TransportError
from models.conversation import ChatSession
from models.message import ChatMessage, ChatPart, ImageAttachment
from storage.kv_store import SQLiteKeyValueStore
from storage.sessions import (
    SessionStore,
    create_session,
    delete_session,
    derive_title,
    ensure_non_empty,
    sort_sessions,
    update_session,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY_MESSAGES = 99


def collapse_runs(messages: Sequence[ChatMessage]) -> List[ChatMessage]:
    """
    Keep only the last turn of every run of same-role turns.

    Guarantees strictly alternating roles and preserves the final turn,
    which providers requiring user/model alternation insist on.
    """
    collapsed: List[ChatMessage] = []
    for i, message in enumerate(messages):
        is_last = i + 1 == len(messages)
        if is_last or message.role != messages[i + 1].role:
            collapsed.append(message)
    return collapsed


def build_request_history(
    messages: Sequence[ChatMessage],
    max_history_messages: int = DEFAULT_MAX_HISTORY_MESSAGES,
) -> List[ChatMessage]:
    """Window the most recent turns, then collapse same-role runs."""
    window = list(messages)
    if max_history_messages > 0:
        window = window[-max_history_messages:]
    return collapse_runs(window)


class ConversationOrchestrator:
    """
    Client-side driver for one conversation UI.

    Attributes:
        sessions: All threads, most recently updated first.
        current_session_id: Id of the active thread.
        messages: Live message list of the active thread.
        current_assistant_message: Pending reply text being streamed.
        loading: True while a request is in flight.
        current_error: Last failure, for display; cleared on the next request.
        model_id: Selected registry id (None means server default).
    """

    def __init__(
        self,
        gateway: Any,
        store: SessionStore,
        max_history_messages: int = DEFAULT_MAX_HISTORY_MESSAGES,
        model_id: Optional[str] = None,
        on_fragment: Optional[Callable[[str], None]] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.max_history_messages = max_history_messages
        self.model_id = model_id
        self.on_fragment = on_fragment

        self.sessions: List[ChatSession] = []
        self.current_session_id: Optional[str] = None
        self.messages: List[ChatMessage] = []
        self.current_assistant_message = ""
        self.loading = False
        self.current_error: Optional[ChatError] = None
        self._request_task: Optional[asyncio.Task] = None

    @classmethod
    async def from_settings(
        cls,
        settings: Settings,
        gateway: Any,
        store: Optional[SessionStore] = None,
        **kwargs,
    ) -> "ConversationOrchestrator":
        """Build an orchestrator, opening the SQLite client store unless one is given."""
        if store is None:
            storage = SQLiteKeyValueStore(settings.resolved_client_db_path)
            await storage.connect()
            store = SessionStore(storage)
        return cls(gateway, store, max_history_messages=settings.max_history_messages, **kwargs)

    # ── State helpers ──────────────────────────────────────────────
    @property
    def current_session(self) -> Optional[ChatSession]:
        return self._find(self.current_session_id)

    def _find(self, session_id: Optional[str]) -> Optional[ChatSession]:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    def _activate(self, session: ChatSession) -> None:
        self.current_session_id = session.id
        self.messages = list(session.messages)
        self.current_assistant_message = ""
        self.current_error = None

    def _snapshot_current(self) -> None:
        """Copy the live message list and title into the session list."""
        session = self.current_session
        if session is None or session.messages == self.messages:
            return
        self.sessions = sort_sessions(update_session(
            self.sessions,
            session.id,
            {"messages": list(self.messages), "title": derive_title(self.messages)},
        ))

    async def _persist_current(self) -> None:
        self._snapshot_current()
        await self.store.save(self.sessions)

    # ── Lifecycle ──────────────────────────────────────────────────
    async def start(self) -> None:
        """Load sessions, run the legacy migration, and activate the newest."""
        sessions = await self.store.load()

        migrated = await self.store.migrate_legacy()
        if migrated is not None:
            sessions = sort_sessions(sessions + [migrated])
            await self.store.save(sessions)

        sessions, created = ensure_non_empty(sessions)
        if created is not None:
            await self.store.save(sessions)

        self.sessions = sessions
        self._activate(sessions[0])

        if self.model_id is None:
            self.model_id = await self.store.load_selected_model_id()

        logger.info(f"Orchestrator ready with {len(self.sessions)} session(s)")

    async def switch_to(self, session_id: str) -> bool:
        """Activate another session, saving the current one first."""
        if session_id == self.current_session_id:
            return True
        if self._find(session_id) is None:
            logger.warning(f"Cannot switch to unknown session {session_id}")
            return False

        await self.stop()
        await self._persist_current()
        self._activate(self._find(session_id))
        return True

    async def create_new(self) -> ChatSession:
        """Create and activate a fresh empty session."""
        await self.stop()
        await self._persist_current()

        session = create_session()
        self.sessions = sort_sessions([session] + self.sessions)
        await self.store.save(self.sessions)
        self._activate(session)
        return session

    async def delete(self, session_id: str) -> None:
        """
        Delete a session. Deleting the active one selects the first
        remaining session, or a new empty one when none remain.
        """
        deleting_current = session_id == self.current_session_id
        if deleting_current:
            await self.stop()
        else:
            self._snapshot_current()

        self.sessions, _ = ensure_non_empty(delete_session(self.sessions, session_id))
        if deleting_current:
            self._activate(self.sessions[0])
        await self.store.save(self.sessions)

    async def clear(self) -> None:
        """Empty the active session."""
        await self.stop()
        self.messages = []
        self.current_error = None
        await self._persist_current()

    async def close(self) -> None:
        """Abort any request and release the underlying store."""
        await self.stop()
        await self.store.storage.close()

    async def select_model(self, model_id: Optional[str]) -> None:
        self.model_id = model_id or None
        await self.store.save_selected_model_id(self.model_id)

    # ── Requests ───────────────────────────────────────────────────
    async def send_message(self, text: str = "", images: Optional[Sequence[ImageAttachment]] = None) -> bool:
        """
        Append a user turn and stream the reply.

        Returns:
            False when the turn is empty or a request is already running.
        """
        parts: List[ChatPart] = []
        if text and text.strip():
            parts.append(ChatPart(text=text))
        for image in images or []:
            parts.append(ChatPart(image=image))
        if not parts:
            return False

        if self.loading:
            logger.warning("A request is already in flight, ignoring send")
            return False

        self.messages.append(ChatMessage(role="user", parts=parts))
        # Persist before streaming so a reload mid-stream keeps the prompt
        await self._persist_current()
        await self._request_with_latest_message()
        return True

    async def retry_last(self) -> bool:
        """Drop a trailing model reply and regenerate it."""
        if self.loading or not self.messages:
            return False
        if self.messages[-1].role == "model":
            self.messages.pop()
            await self._persist_current()
        return await self._request_with_latest_message()

    async def stop(self) -> None:
        """Abort the in-flight request, keeping whatever text arrived."""
        task = self._request_task
        if task is None:
            return
        await self._abort(task)

    async def _abort(self, task: asyncio.Task) -> None:
        if not task.done():
            task.cancel()
        await asyncio.wait({task})
        await self._archive_current_message()
        self._finish_request(task)

    async def _request_with_latest_message(self) -> bool:
        request_messages = build_request_history(self.messages, self.max_history_messages)
        if not request_messages or request_messages[-1].role != "user":
            self.current_error = InvalidRequestError(
                "Invalid message history: The last message must be from user role."
            )
            return False

        history = request_messages[:-1]
        new_parts = request_messages[-1].parts

        self.loading = True
        self.current_assistant_message = ""
        self.current_error = None

        task = asyncio.create_task(self._consume_stream(history, new_parts))
        self._request_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            # The caller was cancelled; settle the request before propagating
            if self._request_task is task:
                await self._abort(task)
            raise

        if self._request_task is not task:
            # stop() already finalized this request
            return True

        if task.cancelled():
            logger.info("Stream aborted")
        elif task.exception() is not None:
            error = task.exception()
            if not isinstance(error, ChatError):
                error = TransportError(str(error) or type(error).__name__)
            logger.error(f"Stream failed: {error.message}")
            self.current_error = error

        await self._archive_current_message()
        self._finish_request(task)
        return True

    async def _consume_stream(self, history: List[ChatMessage], new_parts: List[ChatPart]) -> None:
        stream = self.gateway.start_stream(history, new_parts, self.model_id)
        try:
            async for fragment in stream:
                self._append_fragment(fragment)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _append_fragment(self, fragment: str) -> None:
        # Collapse blank lines duplicated across chunk boundaries
        if fragment == "\n" and self.current_assistant_message.endswith("\n"):
            return
        if not fragment:
            return
        self.current_assistant_message += fragment
        if self.on_fragment is not None:
            self.on_fragment(fragment)

    async def _archive_current_message(self) -> None:
        """Turn the pending reply into a model turn and persist it."""
        text = self.current_assistant_message
        if not text:
            return
        self.current_assistant_message = ""
        self.messages.append(ChatMessage(role="model", parts=[ChatPart(text=text)]))
        await self._persist_current()

    def _finish_request(self, task: asyncio.Task) -> None:
        if self._request_task is task:
            self._request_task = None
            self.loading = False
