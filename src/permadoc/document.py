"""
Versioned document entity.

A Document is created unposted, becomes posted once the ledger accepts its
transaction, and gains a timestamp once its block is known. Updates never
edit an existing transaction: they bump the version and submit a new one.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from .exceptions import InvalidRequestError

if TYPE_CHECKING:
    from .client import LedgerDocumentClient


@dataclass(eq=False)
class Document:
    """
    A single managed document containing arbitrary content.

    Documents should be obtained through a `LedgerDocumentClient` rather than
    constructed manually, so that `update()` has a write path to delegate to.

    Attributes:
        name: Caller-chosen identifier, assumed unique per logical document
        content: Opaque payload transported verbatim
        version: Non-negative integer, +1 per update
        tags: User-defined metadata tags
        transaction_id: Ledger-assigned id of the transaction holding this version
        posted: Whether the ledger accepted the submission
        timestamp: Block time of the confirmed transaction (UTC)
        owner: Address that signed the transaction, once known
    """

    name: str
    content: Any
    tags: Dict[str, str] = field(default_factory=dict)
    version: int = 0
    transaction_id: Optional[str] = None
    posted: bool = False
    timestamp: Optional[datetime] = None
    owner: Optional[str] = None
    client: Optional["LedgerDocumentClient"] = field(default=None, repr=False)

    def __post_init__(self):
        if self.version < 0:
            raise InvalidRequestError(f"Document version must be non-negative, got {self.version}")

    def to_wire_record(self) -> Dict[str, Any]:
        """Fields persisted on-ledger. Local state (transaction id, posted, timestamp, owner) is never embedded."""
        return {
            "name": self.name,
            "content": self.content,
            "version": self.version,
            "tags": dict(self.tags),
        }

    async def update(self, content: Any) -> "Document":
        """
        Replace the content and submit it as the next version.

        Content and version stay mutated if the submission fails; the caller
        must retry or discard the document.

        Raises:
            WriteRejectedError: If the ledger rejects the new transaction
            ReadOnlyError: If the owning client has no wallet
            InvalidRequestError: If the document is not bound to a client
        """
        if self.client is None:
            raise InvalidRequestError("Document is not bound to a client; obtain it through LedgerDocumentClient")

        self.content = content
        self.version += 1
        self.posted = False
        return await self.client.update_document(self)

    def bump_timestamp(self, block_timestamp: int) -> None:
        """Set the timestamp from a block time in Unix seconds."""
        self.timestamp = datetime.fromtimestamp(block_timestamp, tz=timezone.utc)
