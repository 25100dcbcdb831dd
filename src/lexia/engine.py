"""Conversation orchestration: one user turn from input to stored reply."""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional, Set

from .errors import BusyError, ConfigError, LexiaError, StoreError, UpstreamError
from .models import (
    ASSISTANT_ROLE,
    USER_ROLE,
    ChatMessage,
    Credential,
    Notification,
    SendStatus,
)

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "Usuario no autenticado"
MISSING_API_KEY = "Por favor, configura tu API Key primero"
PROVIDER_UNAVAILABLE = "El proveedor seleccionado no está disponible"
BUSY = "Ya hay una consulta en curso"
STORE_FAILED = "No se pudo guardar el mensaje"
UPSTREAM_FAILED = "No se pudo obtener respuesta del asistente. Verifica tu API Key."
LOAD_FAILED = "No se pudieron cargar los mensajes"


class ChatSession:
    """In-memory state of the conversation shown to one user."""

    def __init__(self, messages: Optional[List[ChatMessage]] = None):
        self.messages: List[ChatMessage] = list(messages or [])
        self.status = SendStatus.IDLE
        self.notification: Optional[Notification] = None

    @property
    def is_loading(self) -> bool:
        return self.status is SendStatus.SENDING

    def notify(self, description: str, title: str = "Error") -> None:
        self.notification = Notification(title=title, description=description)


class Engine(ABC):
    """Abstract base for conversation engines.

    The engine reaches the store and the LLM providers through ``app``, which
    may be bound after construction.
    """

    def __init__(self, app=None):
        self.app = app

    @abstractmethod
    def send_message(
        self,
        session: ChatSession,
        content: str,
        user_id: Optional[str],
        credential: Optional[Credential],
    ) -> ChatSession:
        """Runs one user turn and returns the updated session.

        Errors never propagate: they end up in ``session.notification``.
        """
        pass

    def load_history(self, user_id: str) -> List[ChatMessage]:
        """Returns the stored history of ``user_id``. Raises ``StoreError``."""
        return self.app.store.list_messages(user_id)

    def reload(self, session: ChatSession, user_id: Optional[str]) -> ChatSession:
        """Replaces the session's messages with the stored history.

        On failure the session keeps its previous messages.
        """
        session.notification = None
        if not user_id:
            return session
        try:
            session.messages = self.load_history(user_id)
        except StoreError:
            logger.exception("Error loading messages for %s", user_id)
            session.notify(LOAD_FAILED)
        return session


class Synchronous(Engine):
    """Runs each turn inline on the calling thread.

    Per turn the session goes ``IDLE -> SENDING -> IDLE`` or ``FAILED``:

    1. save the user message and show it right away,
    2. re-read the history from the store (``reload_history``),
    3. ask the provider selected by the credential for a reply,
    4. save the reply and show it.

    A failure leaves whatever was already saved in place. Only one turn per
    user may be in flight; a second one is rejected with ``BusyError``.
    """

    def __init__(self, app=None, reload_history: bool = True):
        super().__init__(app)
        self.reload_history = reload_history
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    def send_message(self, session, content, user_id, credential):
        session.notification = None
        try:
            provider = self._check_ready(user_id, credential)
            with self._slot(user_id):
                self._run_turn(session, content, user_id, credential, provider)
        except (ConfigError, BusyError) as e:
            logger.warning("Message not sent: %s", e)
            session.notify(str(e))
        return session

    def in_flight(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._in_flight

    def _check_ready(self, user_id, credential):
        if not user_id:
            raise ConfigError(NOT_AUTHENTICATED)
        if credential is None or not credential.api_key:
            raise ConfigError(MISSING_API_KEY)
        provider = self.app.providers.get(credential.provider)
        if provider is None:
            raise ConfigError(PROVIDER_UNAVAILABLE)
        return provider

    @contextmanager
    def _slot(self, user_id: str) -> Iterator[None]:
        with self._lock:
            if user_id in self._in_flight:
                raise BusyError(BUSY)
            self._in_flight.add(user_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(user_id)

    def _run_turn(self, session, content, user_id, credential, provider):
        store = self.app.store
        previous = list(session.messages)
        session.status = SendStatus.SENDING
        logger.debug("Sending message for %s via %s", user_id, credential.provider)
        try:
            user_message = store.append_message(user_id, USER_ROLE, content)
            session.messages.append(user_message)

            if self.reload_history:
                history = [
                    msg
                    for msg in store.list_messages(user_id)
                    if msg.id != user_message.id
                ]
            else:
                history = previous

            self._before_llm_call(history)
            reply = provider.complete(history, content, credential)
            self._after_llm_call(reply)

            assistant_message = store.append_message(user_id, ASSISTANT_ROLE, reply)
            session.messages.append(assistant_message)
        except StoreError:
            logger.exception("Error saving message for %s", user_id)
            session.status = SendStatus.FAILED
            session.notify(STORE_FAILED)
        except UpstreamError as e:
            logger.error(
                "Error calling LLM API (status=%s, malformed=%s): %s",
                e.status,
                e.malformed,
                e,
            )
            session.status = SendStatus.FAILED
            session.notify(UPSTREAM_FAILED)
        except LexiaError:
            logger.exception("Error sending message for %s", user_id)
            session.status = SendStatus.FAILED
            session.notify(UPSTREAM_FAILED)
        else:
            session.status = SendStatus.IDLE

    def _before_llm_call(self, history: List[ChatMessage]) -> None:
        """Hook called with the history right before the provider call."""
        pass

    def _after_llm_call(self, reply: str) -> None:
        """Hook called with the reply text right after the provider call."""
        pass
