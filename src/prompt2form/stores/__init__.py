"""Session transcript stores and the saved-form record store."""

from prompt2form.stores.base import BaseSessionStore
from prompt2form.stores.form_store import JsonFormStore
from prompt2form.stores.memory_store import InMemorySessionStore
from prompt2form.stores.redis_store import RedisSessionStore

__all__ = [
    "BaseSessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
    "JsonFormStore",
]
