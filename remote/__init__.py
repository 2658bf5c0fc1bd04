from remote.base import RemoteError, RemoteRepository
from remote.http import HttpExpenseRepository
from remote.memory import InMemoryExpenseRepository

__all__ = [
    "HttpExpenseRepository",
    "InMemoryExpenseRepository",
    "RemoteError",
    "RemoteRepository",
]
