"""
Permadoc - versioned documents on an append-only ledger.

This library provides named-document semantics (create, update, fetch by
name, fetch by tag) on top of ledger transactions, with an admin wallet
funding every write and a local cache of confirmed documents.

Usage:
    from permadoc import create_client, load_wallet

    client = create_client(ledger, index, wallet=load_wallet("wallet.json"))
    doc = await client.add_document("Test Document", "Lorem Ipsum", {"hasTag": "true"})
    await doc.update("New content")
    latest = await client.get_document_by_name("Test Document")
"""

from .client import LedgerDocumentClient, create_client
from .document import Document
from .cache import DocumentCache, MemoryCache, CacheBackend, create_cache
from .codec import DocumentCodec, JsonCodec
from .confirmation import ConfirmationPoller, ConfirmationResult, ConfirmationState
from .query import NAME_TAG, VERSION_TAG, META_PREFIX, build_index_query
from .services import (
    LedgerService,
    IndexQueryService,
    IndexQuery,
    QueryEdge,
    QueryPage,
    Tag,
    TagFilter,
    SubmissionResult,
    TransactionStatus,
    TransactionMetadata,
    Confirmation,
    Block,
)

from .config import PermadocConfig, QueryOptions, load_config, load_wallet, setup_logging
from .exceptions import (
    PermadocError,
    ConfigurationError,
    InvalidRequestError,
    ReadOnlyError,
    WriteRejectedError,
    ConfirmationTimeoutError,
    UnverifiedOwnerError,
    NotADocumentError,
    DocumentNotFoundError,
)

__version__ = "0.4.0"

__all__ = [
    # Main API Classes
    "LedgerDocumentClient",
    "Document",
    "DocumentCache",
    "MemoryCache",
    "CacheBackend",
    "ConfirmationPoller",
    "ConfirmationResult",
    "ConfirmationState",
    "DocumentCodec",
    "JsonCodec",

    # Factory Functions
    "create_client",
    "create_cache",
    "build_index_query",

    # Wire constants
    "NAME_TAG",
    "VERSION_TAG",
    "META_PREFIX",

    # Service interfaces
    "LedgerService",
    "IndexQueryService",
    "IndexQuery",
    "QueryEdge",
    "QueryPage",
    "Tag",
    "TagFilter",
    "SubmissionResult",
    "TransactionStatus",
    "TransactionMetadata",
    "Confirmation",
    "Block",

    # Configuration
    "PermadocConfig",
    "QueryOptions",
    "load_config",
    "load_wallet",
    "setup_logging",

    # Exceptions
    "PermadocError",
    "ConfigurationError",
    "InvalidRequestError",
    "ReadOnlyError",
    "WriteRejectedError",
    "ConfirmationTimeoutError",
    "UnverifiedOwnerError",
    "NotADocumentError",
    "DocumentNotFoundError",
]
