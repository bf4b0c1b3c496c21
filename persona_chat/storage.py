"""JSON file storage for messages and characters.

All state is stored in flat JSON files under a configurable base directory.
There is no database or ORM: reads and writes go through plain helper
methods that load and dump JSON.

Directory layout:

    {base}/
      characters.json            ← list of Persona objects (seeded from presets)
      message-seq.json           ← {"last_id": N}, store-wide message id counter
      conversation-activity.json ← {conversation_id: id of its latest message}
      conversations/
        {conversation_id}.json   ← append-only Message stream, oldest first

A conversation has no record of its own: it exists once its first message
is appended and is just the file that groups its messages. The activity
index orders conversations by their latest message.

The async methods do their file I/O inline (under a threading.Lock), so a
large conversation rewrite briefly blocks the event loop.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError as ModelValidationError

from persona_chat.errors import StorageFailure, ValidationError
from persona_chat.models import Message, MessageRole, Persona

PRESETS_DIR = Path(__file__).parent.parent / "presets"

logger = logging.getLogger(__name__)

CONVERSATION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def check_conversation_id(conversation_id: str) -> str:
    """Reject ids that are not safe to use as a file name."""
    if not CONVERSATION_ID_RE.match(conversation_id):
        raise ValidationError(f"Invalid conversation id {conversation_id!r}")
    return conversation_id


# ---------------------------------------------------------------------------
# Protocols: what the orchestrator needs from storage
# ---------------------------------------------------------------------------

class MessageLog(Protocol):
    async def append(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        character_id: int | None = None,
    ) -> Message: ...

    async def read_ordered(
        self, conversation_id: str, limit: int | None = None
    ) -> list[Message]: ...

    async def conversation_ids(self) -> list[str]: ...  # newest activity first


class CharacterRegistry(Protocol):
    async def get_by_id(self, character_id: int) -> Persona | None: ...

    async def list_all(self) -> list[Persona]: ...


# ---------------------------------------------------------------------------
# Messages (append-only)
# ---------------------------------------------------------------------------

class JsonMessageLog:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._conv_root = base_path / "conversations"
        self._seq_file = base_path / "message-seq.json"
        self._activity_file = base_path / "conversation-activity.json"
        self._conv_root.mkdir(parents=True, exist_ok=True)
        # serialises id allocation and file rewrites across threads
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _conv_file(self, conversation_id: str) -> Path:
        return self._conv_root / f"{check_conversation_id(conversation_id)}.json"

    def _read_json(self, path: Path) -> Any:
        try:
            return json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.error("read failed path=%s: %s", path, e)
            raise StorageFailure(f"Cannot read {path.name}: {e}") from e

    def _write_json(self, path: Path, data: Any) -> None:
        try:
            path.write_text(json.dumps(data, indent=2))
        except OSError as e:
            logger.error("write failed path=%s: %s", path, e)
            raise StorageFailure(f"Cannot write {path.name}: {e}") from e

    def _next_id(self) -> int:
        last = 0
        if self._seq_file.is_file():
            last = int(self._read_json(self._seq_file).get("last_id", 0))
        self._write_json(self._seq_file, {"last_id": last + 1})
        return last + 1

    def _activity(self) -> dict[str, int]:
        if not self._activity_file.is_file():
            return {}
        return self._read_json(self._activity_file)

    def _touch(self, conversation_id: str, message_id: int) -> None:
        activity = self._activity()
        activity[conversation_id] = message_id
        self._write_json(self._activity_file, activity)

    def _load(self, conversation_id: str) -> list[Message]:
        path = self._conv_file(conversation_id)
        if not path.is_file():
            return []
        try:
            return [Message.model_validate(m) for m in self._read_json(path)]
        except ModelValidationError as e:
            raise StorageFailure(f"Corrupt conversation {conversation_id}: {e}") from e

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def append(
        self,
        conversation_id: str,
        role: MessageRole,
        content: str,
        character_id: int | None = None,
    ) -> Message:
        """Append one message and return it with its store-assigned id."""
        with self._lock:
            existing = self._load(conversation_id)
            msg = Message(
                id=self._next_id(),
                conversation_id=conversation_id,
                role=role,
                content=content,
                created_at=datetime.now(timezone.utc),
                character_id=character_id,
            )
            existing.append(msg)
            self._write_json(
                self._conv_file(conversation_id),
                [m.model_dump(mode="json") for m in existing],
            )
            self._touch(conversation_id, msg.id)
        return msg

    async def read_ordered(
        self, conversation_id: str, limit: int | None = None
    ) -> list[Message]:
        """The most recent `limit` messages (all when None), oldest first."""
        with self._lock:
            loaded = self._load(conversation_id)
        messages = sorted(loaded, key=lambda m: (m.created_at, m.id))
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return messages

    async def conversation_ids(self) -> list[str]:
        """Conversation ids, most recently appended to first."""
        with self._lock:
            activity = self._activity()
        # files missing from the index sort last
        ranked = {p.stem: 0 for p in self._conv_root.glob("*.json")}
        ranked.update((cid, last) for cid, last in activity.items() if cid in ranked)
        return sorted(ranked, key=lambda cid: (ranked[cid], cid), reverse=True)


# ---------------------------------------------------------------------------
# Characters (read-only to the engine)
# ---------------------------------------------------------------------------

class JsonCharacterRegistry:
    def __init__(self, path: Path) -> None:
        self._path = path

    async def list_all(self) -> list[Persona]:
        if not self._path.is_file():
            return []
        try:
            raw = json.loads(self._path.read_text())
            personas = [Persona.model_validate(p) for p in raw]
        except (OSError, json.JSONDecodeError, ModelValidationError) as e:
            logger.error("cannot load characters path=%s: %s", self._path, e)
            raise StorageFailure(f"Cannot load characters: {e}") from e
        return sorted(personas, key=lambda p: p.id)

    async def get_by_id(self, character_id: int) -> Persona | None:
        for persona in await self.list_all():
            if persona.id == character_id:
                return persona
        return None


def init_storage(
    data_dir: Path, presets_dir: Path | None = None
) -> tuple[JsonMessageLog, JsonCharacterRegistry]:
    """Create the data directory, seed characters from presets, open both stores."""
    data_dir.mkdir(parents=True, exist_ok=True)
    characters = data_dir / "characters.json"
    preset = (presets_dir or PRESETS_DIR) / "characters.json"
    if not characters.exists() and preset.is_file():
        shutil.copyfile(preset, characters)
    return JsonMessageLog(data_dir), JsonCharacterRegistry(characters)
