"""Session journal reader: per-agent session indexes and append-only JSONL transcripts."""
import json
import logging
import os
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from degrade import soften

logger = logging.getLogger("mission_control.journal")

DEFAULT_MESSAGE_LIMIT = 300
DEFAULT_SESSION_LIMIT = 100


class ChatMessage(BaseModel):
    role: str
    content: str
    timestamp: Optional[Union[str, int, float]] = None
    id: Optional[Union[str, int]] = None


class SessionMeta(BaseModel):
    id: str
    sessionKey: str
    agent: str
    label: Optional[str] = None
    updatedAt: Optional[str] = None
    model: Optional[str] = None


# ── Paths ───────────────────────────────────────────────────────
def is_safe_agent_id(agent: str) -> bool:
    if not agent or agent in (".", ".."):
        return False
    return "/" not in agent and "\\" not in agent and os.sep not in agent


def session_index_path(agents_dir: str, agent: str) -> str:
    return os.path.join(agents_dir, agent, "sessions", "sessions.json")


def journal_path(agents_dir: str, agent: str, session_id: str) -> str:
    return os.path.join(agents_dir, agent, "sessions", f"{session_id}.jsonl")


def list_agent_ids(agents_dir: str) -> List[str]:
    """Agent ids in directory scan order. Raises OSError if the root is unreadable."""
    with os.scandir(agents_dir) as it:
        return [e.name for e in it if e.is_dir()]


# ── Journal parsing ─────────────────────────────────────────────
def extract_text(content: Any) -> str:
    """Join the ``text`` blocks of a message payload with newlines.

    Thinking blocks and anything that is not a well-formed text block are
    skipped wherever they appear. A bare string payload is its own text.
    """
    if isinstance(content, str):
        return content.strip()
    if not isinstance(content, list):
        return ""
    parts = []
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
            parts.append(block["text"])
    return "\n".join(parts).strip()


def message_from_entry(entry: Any) -> Optional[ChatMessage]:
    """Derive a chat message from one journal entry, or None if it carries no text."""
    if not isinstance(entry, dict) or entry.get("type") != "message":
        return None
    msg = entry.get("message")
    if not isinstance(msg, dict):
        return None
    role = msg.get("role")
    if not isinstance(role, str):
        return None
    text = extract_text(msg.get("content"))
    if not text:
        return None
    timestamp = entry.get("timestamp")
    entry_id = entry.get("id")
    return ChatMessage(
        role=role,
        content=text,
        timestamp=timestamp if isinstance(timestamp, (str, int, float)) and not isinstance(timestamp, bool) else None,
        id=entry_id if isinstance(entry_id, (str, int)) and not isinstance(entry_id, bool) else None,
    )


def iter_journal_messages(path: str) -> Iterator[ChatMessage]:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
            except (ValueError, RecursionError):
                # partially written tail line, oversized number, or runaway nesting
                continue
            message = message_from_entry(entry)
            if message is not None:
                yield message


def read_journal(path: str, limit: int = DEFAULT_MESSAGE_LIMIT, latest: bool = False) -> List[ChatMessage]:
    """Read up to ``limit`` messages from a journal, oldest first.

    By default these are the earliest messages and reading stops at the
    limit. With ``latest`` the whole file is scanned and the last ``limit``
    messages are kept.
    """
    if limit <= 0 or not os.path.exists(path):
        return []
    if latest:
        return list(deque(iter_journal_messages(path), maxlen=limit))
    messages = []
    for message in iter_journal_messages(path):
        messages.append(message)
        if len(messages) >= limit:
            break
    return messages


# ── Session indexes ─────────────────────────────────────────────
def load_session_index(agents_dir: str, agent: str) -> Dict[str, Any]:
    with open(session_index_path(agents_dir, agent), "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"session index for {agent} is not an object")
    return data


def _index_or_empty(agents_dir: str, agent: str) -> Dict[str, Any]:
    if not os.path.exists(session_index_path(agents_dir, agent)):
        logger.debug("agent %s has no session index", agent)
        return {}
    return soften(load_session_index, agents_dir, agent, default=dict, what=f"session index for {agent}")


def _iso_utc_ms(dt: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix, e.g. 2026-01-01T00:00:05.000Z."""
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def _iso_from_ms(value: Any) -> Tuple[float, Optional[str]]:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or not value:
        return 0, None
    try:
        return value, _iso_utc_ms(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
    except (OverflowError, ValueError, OSError):
        return 0, None


def _agent_session_rows(agents_dir: str, agent: str) -> List[Tuple[float, SessionMeta]]:
    rows = []
    for key, info in _index_or_empty(agents_dir, agent).items():
        if not isinstance(info, dict) or not isinstance(info.get("sessionId"), str) or not info["sessionId"]:
            continue
        updated_ms, updated_iso = _iso_from_ms(info.get("updatedAt"))
        label = info.get("label")
        model = info.get("model")
        rows.append((updated_ms, SessionMeta(
            id=info["sessionId"],
            sessionKey=key,
            agent=agent,
            label=label if isinstance(label, str) else None,
            updatedAt=updated_iso,
            model=model if isinstance(model, str) else None,
        )))
    return rows


def list_agent_sessions(agents_dir: str, agent: str) -> List[SessionMeta]:
    if not is_safe_agent_id(agent):
        return []
    return [meta for _, meta in _agent_session_rows(agents_dir, agent)]


def list_sessions(agents_dir: str, agent_ids: Sequence[str], agent_filter: Optional[str] = None,
                  limit: int = DEFAULT_SESSION_LIMIT) -> List[SessionMeta]:
    """Sessions across agents, most recently updated first."""
    agents = [agent_filter] if agent_filter and agent_filter != "all" else list(agent_ids)
    rows = []
    for agent in agents:
        if is_safe_agent_id(agent):
            rows.extend(_agent_session_rows(agents_dir, agent))
    rows.sort(key=lambda r: r[0], reverse=True)
    return [meta for _, meta in rows[:max(limit, 0)]]


def find_session_messages(agents_dir: str, session_id: str, agent_ids: Sequence[str],
                          agent_hint: Optional[str] = None, limit: int = DEFAULT_MESSAGE_LIMIT,
                          latest: bool = False) -> List[ChatMessage]:
    """Locate a session by id and read its journal.

    The first agent whose index mentions the id wins; without a hint the
    agents are tried in directory scan order, which the filesystem decides.
    """
    candidates = [agent_hint] if agent_hint else list(agent_ids)
    for agent in candidates:
        if not is_safe_agent_id(agent):
            continue
        index = _index_or_empty(agents_dir, agent)
        if any(isinstance(v, dict) and v.get("sessionId") == session_id for v in index.values()):
            path = journal_path(agents_dir, agent, session_id)
            return soften(read_journal, path, limit, latest, default=list, what=f"journal {path}")
    return []
