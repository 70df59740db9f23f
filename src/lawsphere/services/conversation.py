"""Cache-first legal Q&A over per-session context windows."""

from __future__ import annotations

import threading
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Deque, Sequence

from lawsphere.errors import PersistenceFailure
from lawsphere.metrics.observability import PipelineMetrics, get_logger
from lawsphere.models import CachedQuery, ChatReply, ConversationTurn
from lawsphere.services.generation import TextGenerator, run_generation
from lawsphere.storage.cache import QueryCacheStore

DEFAULT_SESSION = "default"
EMPTY_REPLY = "No response generated."
DEFAULT_PERSONA = (
    "You are a legal advice assistant. Provide concise, practical legal advice "
    "without disclaimers or lengthy explanations. Maintain the conversation context."
)


def normalize_query(message: str) -> str:
    return (message or "").strip().casefold()


@dataclass(frozen=True)
class ConversationConfig:
    """Configuration for the chat loop."""

    window_turns: int = 10
    create_doc_threshold: int = 50
    max_sessions: int = 1000
    persona: str | None = DEFAULT_PERSONA


class ConversationWindow:
    """Bounded, append-only sequence of turns for one session.

    ``lock`` guards the history snapshot and the commit of each user/model
    pair; generation runs outside it. Pairs are committed together, so they
    stay adjacent even when turns of one session overlap.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 2:
            raise ValueError("A context window needs room for at least one user/model pair")
        self._turns: Deque[ConversationTurn] = deque(maxlen=capacity)
        self.lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._turns.maxlen or 0

    def turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    def extend(self, *turns: ConversationTurn) -> None:
        self._turns.extend(turns)

    def preview(self, turn: ConversationTurn) -> list[ConversationTurn]:
        """The window as it would be after appending ``turn``, oldest turns evicted."""

        return [*self._turns, turn][-self.capacity :]

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)


class SessionRegistry:
    """Context windows keyed by session id, least recently used evicted first."""

    def __init__(self, window_turns: int = 10, max_sessions: int = 1000) -> None:
        self._window_turns = window_turns
        self._max_sessions = max(1, max_sessions)
        self._windows: OrderedDict[str, ConversationWindow] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> ConversationWindow:
        with self._lock:
            window = self._windows.get(session_id)
            if window is None:
                window = ConversationWindow(self._window_turns)
                self._windows[session_id] = window
                while len(self._windows) > self._max_sessions:
                    self._windows.popitem(last=False)
            else:
                self._windows.move_to_end(session_id)
            return window

    def drop(self, session_id: str) -> bool:
        with self._lock:
            return self._windows.pop(session_id, None) is not None

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._windows

    def __len__(self) -> int:
        return len(self._windows)


class ConversationCache:
    """Answers chat messages from the query cache before calling the text service.

    Cache lookups that fail are treated as misses and cache writes are
    best-effort; only a failing text service makes a turn fail, in which case
    the session window is left untouched.
    """

    def __init__(
        self,
        generator: TextGenerator,
        store: QueryCacheStore,
        config: ConversationConfig | None = None,
        sessions: SessionRegistry | None = None,
    ) -> None:
        self._generator = generator
        self._store = store
        self._config = config or ConversationConfig()
        self._sessions = sessions or SessionRegistry(self._config.window_turns, self._config.max_sessions)
        self._logger = get_logger("conversation")

    @property
    def sessions(self) -> SessionRegistry:
        return self._sessions

    def reply(self, message: str, *, session_id: str | None = None) -> ChatReply:
        key = normalize_query(message)
        if not key:
            raise ValueError("Message is required")
        session = session_id or DEFAULT_SESSION
        window = self._sessions.get(session)
        user_turn = ConversationTurn(role="user", text=message.strip())
        cached = self._lookup(key)
        if cached is not None:
            with window.lock:
                window.extend(user_turn, ConversationTurn(role="model", text=cached.response))
            self._logger.info("cache.hit", session_id=session, record_id=cached.record_id)
            return ChatReply(reply=cached.response, create_doc=self._suggests_document(cached.response), cached=True)
        with window.lock:
            history = window.preview(user_turn)
        text = run_generation(self._generator, "chat", history, system=self._config.persona)
        empty = not text.strip()
        reply = EMPTY_REPLY if empty else text
        with window.lock:
            window.extend(user_turn, ConversationTurn(role="model", text=reply))
        cacheable = not empty and getattr(self._generator, "cacheable", True)
        stored = self._remember(key, reply) if cacheable else False
        self._logger.info(
            "cache.miss",
            session_id=session,
            history_turns=len(history),
            cacheable=cacheable,
            stored=stored,
        )
        return ChatReply(
            reply=reply,
            create_doc=self._suggests_document(reply),
            cached=False,
            cache_write_failed=cacheable and not stored,
        )

    def history(self, session_id: str | None = None) -> Sequence[ConversationTurn]:
        return self._sessions.get(session_id or DEFAULT_SESSION).turns()

    def reset_session(self, session_id: str) -> bool:
        return self._sessions.drop(session_id)

    def _lookup(self, key: str) -> CachedQuery | None:
        try:
            cached = self._store.find_exact(key)
        except PersistenceFailure as exc:
            PipelineMetrics.record_cache_lookup("error")
            self._logger.warning("cache.lookup_failed", error=str(exc))
            return None
        PipelineMetrics.record_cache_lookup("hit" if cached is not None else "miss")
        return cached

    def _remember(self, key: str, reply: str) -> bool:
        try:
            self._store.append(key, reply)
        except PersistenceFailure as exc:
            PipelineMetrics.record_persistence_failure("query_cache")
            self._logger.warning("cache.write_failed", error=str(exc))
            return False
        return True

    def _suggests_document(self, reply: str) -> bool:
        return len(reply) > self._config.create_doc_threshold
