# Domain Package
from .errors import (
    FlashliteError,
    ListenFailed,
    NotAuthenticated,
    NotFound,
    ValidationError,
    WriteFailed,
)
from .models import Card, Deck, Document, Operation, Principal, Rating, SessionCard, WriteResult
from .ports import AuthProvider, CollectionQuery, Scope, ScopeKind, Store

__all__ = [
    "AuthProvider",
    "Card",
    "CollectionQuery",
    "Deck",
    "Document",
    "FlashliteError",
    "ListenFailed",
    "NotAuthenticated",
    "NotFound",
    "Operation",
    "Principal",
    "Rating",
    "Scope",
    "ScopeKind",
    "SessionCard",
    "Store",
    "ValidationError",
    "WriteFailed",
    "WriteResult",
]
