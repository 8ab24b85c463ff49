"""Abstract base class for session transcript stores."""

from abc import ABC, abstractmethod

from prompt2form.schemas.session import ConversationTurn


class BaseSessionStore(ABC):
    """
    Abstract base class for transcript stores.

    Subclasses must implement:
    - append(): add a turn and refresh the session's time-to-live
    - read(): full ordered transcript, empty when absent or expired
    - delete(): drop the session, idempotent

    Connectivity failures are raised as StoreUnavailable; implementations
    never return a partial transcript to mask one.
    """

    store_name: str = "base"

    def __init__(self, ttl_seconds: int = 3600):
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    def append(self, session_id: str, turn: ConversationTurn) -> None:
        """
        Add one turn to the end of a session's transcript.

        Creates the session if absent and resets its expiry to ``ttl_seconds``.
        """
        pass

    @abstractmethod
    def read(self, session_id: str) -> list[ConversationTurn]:
        """Return the ordered transcript, or an empty list."""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Remove a session immediately. No error if it does not exist."""
        pass

    def open(self) -> None:
        """Acquire connections. No-op by default."""

    def close(self) -> None:
        """Release connections. No-op by default."""

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
