"""
Session store.

Durable persistence of the conversation thread list on top of a
KeyValueStore. The list is written as a single JSON blob under one key;
concurrent writers race and the last write wins.

The list operations (create/update/delete) are pure: they return new
lists and never mutate the sessions passed in.
"""

import json
import logging
import random
import string
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from models.conversation import ChatSession, LegacyMessage, DEFAULT_TITLE
from models.message import ChatMessage, ChatPart
from storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

# ============================================================
# Storage keys
# ============================================================
SESSIONS_KEY = "chatSessions"
LEGACY_MESSAGES_KEY = "messageList"
SELECTED_MODEL_KEY = "selectedModelId"
STICK_TO_BOTTOM_KEY = "stickToBottom"
PASSWORD_KEY = "pass"

TITLE_MAX_CHARS = 30

_BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_session_id() -> str:
    """Time-based prefix plus random suffix. Unique per client, not globally."""
    suffix = "".join(random.choices(_BASE36, k=11))
    return _to_base36(now_ms()) + suffix


def derive_title(messages: Sequence[ChatMessage]) -> str:
    """
    Title from the first user turn: its first 30 characters, plus "..."
    when truncated. "New Chat" when there is no user text yet.
    """
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is None:
        return DEFAULT_TITLE

    content = " ".join(part.text for part in first_user.parts if part.text)
    if not content:
        return DEFAULT_TITLE
    return content[:TITLE_MAX_CHARS] + "..." if len(content) > TITLE_MAX_CHARS else content


def create_session() -> ChatSession:
    """New empty session with both timestamps set to now."""
    now = now_ms()
    return ChatSession(
        id=generate_session_id(),
        title=DEFAULT_TITLE,
        messages=[],
        created_at=now,
        updated_at=now,
    )


def update_session(sessions: Sequence[ChatSession], session_id: str, patch: Dict[str, Any]) -> List[ChatSession]:
    """
    Merge `patch` (field names, e.g. title/messages) into the matching
    session and refresh its updatedAt. Other sessions are returned as is.
    """
    updated: List[ChatSession] = []
    for session in sessions:
        if session.id != session_id:
            updated.append(session)
            continue
        changes = dict(patch)
        changes["updated_at"] = max(now_ms(), session.updated_at)
        updated.append(session.model_copy(update=changes))
    return updated


def delete_session(sessions: Sequence[ChatSession], session_id: str) -> List[ChatSession]:
    """New list without the matching session."""
    return [s for s in sessions if s.id != session_id]


def ensure_non_empty(sessions: Sequence[ChatSession]) -> Tuple[List[ChatSession], Optional[ChatSession]]:
    """
    Guarantee at least one session exists.

    Returns:
        (sessions, created) where created is the fresh session, or None
        when the list already had entries.
    """
    if sessions:
        return list(sessions), None
    created = create_session()
    return [created], created


def sort_sessions(sessions: Sequence[ChatSession]) -> List[ChatSession]:
    """Most recently updated first."""
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


class SessionStore:
    """
    Persistence for the list of ChatSession plus small client preferences.

    Reads never raise: missing or corrupt data loads as empty. Writes are
    best-effort: failures are logged and reported as False.
    """

    def __init__(self, storage: KeyValueStore):
        self.storage = storage

    # ── Session list ───────────────────────────────────────────────
    async def load(self) -> List[ChatSession]:
        """Deserialize the session list, newest first."""
        try:
            stored = await self.storage.get_item(SESSIONS_KEY)
            if not stored:
                return []
            raw = json.loads(stored)
            if not isinstance(raw, list):
                logger.error("Failed to load sessions: stored value is not a list")
                return []
            sessions = [ChatSession.model_validate(item) for item in raw]
        except (ValueError, ValidationError) as e:
            logger.error(f"Failed to load sessions: {e}")
            return []
        except Exception as e:
            logger.error(f"Failed to read session storage: {e}")
            return []
        return sort_sessions(sessions)

    async def save(self, sessions: Sequence[ChatSession]) -> bool:
        """Serialize the whole list in a single write."""
        try:
            payload = json.dumps([s.to_storage() for s in sessions], ensure_ascii=False)
            await self.storage.set_item(SESSIONS_KEY, payload)
            return True
        except Exception as e:
            logger.error(f"Failed to save sessions: {e}")
            return False

    def create(self) -> ChatSession:
        return create_session()

    def update(self, sessions: Sequence[ChatSession], session_id: str, patch: Dict[str, Any]) -> List[ChatSession]:
        return update_session(sessions, session_id, patch)

    def delete(self, sessions: Sequence[ChatSession], session_id: str) -> List[ChatSession]:
        return delete_session(sessions, session_id)

    # ── Legacy migration ───────────────────────────────────────────
    async def migrate_legacy(self) -> Optional[ChatSession]:
        """
        Convert the pre-session single-thread log into one ChatSession.

        The legacy key is removed only after a successful conversion, so
        this runs at most once in effect. Parse failures return None and
        leave the legacy data untouched.
        """
        try:
            stored = await self.storage.get_item(LEGACY_MESSAGES_KEY)
            if not stored:
                return None

            raw = json.loads(stored)
            if not isinstance(raw, list) or not raw:
                return None

            legacy = [LegacyMessage.model_validate(item) for item in raw]
            messages = [
                ChatMessage(
                    role="model" if m.role == "assistant" else "user",
                    parts=[ChatPart(text=m.content)],
                )
                for m in legacy
                if m.content and m.content.strip()
            ]

            # Slightly older so it sorts below anything created right after
            imported_at = now_ms() - 1000
            session = ChatSession(
                id=generate_session_id(),
                title=derive_title(messages),
                messages=messages,
                created_at=imported_at,
                updated_at=imported_at,
            )

            await self.storage.remove_item(LEGACY_MESSAGES_KEY)
            logger.info(f"Migrated {len(messages)} legacy message(s) into session {session.id}")
            return session
        except (ValueError, ValidationError) as e:
            logger.error(f"Failed to migrate legacy data: {e}")
            return None
        except Exception as e:
            logger.error(f"Failed to access legacy data: {e}")
            return None

    # ── Preferences ────────────────────────────────────────────────
    async def _get(self, key: str) -> Optional[str]:
        try:
            return await self.storage.get_item(key)
        except Exception as e:
            logger.error(f"Failed to read '{key}': {e}")
            return None

    async def _set(self, key: str, value: Optional[str]) -> bool:
        try:
            if value is None:
                await self.storage.remove_item(key)
            else:
                await self.storage.set_item(key, value)
            return True
        except Exception as e:
            logger.error(f"Failed to write '{key}': {e}")
            return False

    async def load_selected_model_id(self) -> Optional[str]:
        return await self._get(SELECTED_MODEL_KEY) or None

    async def save_selected_model_id(self, model_id: Optional[str]) -> bool:
        return await self._set(SELECTED_MODEL_KEY, model_id or None)

    async def load_stick_to_bottom(self) -> bool:
        return await self._get(STICK_TO_BOTTOM_KEY) == "stick"

    async def save_stick_to_bottom(self, stick: bool) -> bool:
        return await self._set(STICK_TO_BOTTOM_KEY, "stick" if stick else None)

    async def load_password(self) -> Optional[str]:
        return await self._get(PASSWORD_KEY)

    async def save_password(self, password: Optional[str]) -> bool:
        return await self._set(PASSWORD_KEY, password or None)
