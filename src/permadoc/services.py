"""
External service interfaces consumed by permadoc.

The ledger client (transaction construction, signing, fees, submission) and
the index backend's transport are provided by the application. This module
defines the narrow contracts the document engine relies on and the wire
models exchanged across them.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# Ledger status code meaning "accepted" on submit and "mined" on status checks
STATUS_OK = 200
STATUS_PENDING = 202


class Tag(BaseModel):
    """A single name/value attribute attached to a transaction."""

    name: str
    value: str


class SubmissionResult(BaseModel):
    transaction_id: str
    status: int

    @property
    def accepted(self) -> bool:
        return self.status == STATUS_OK


class Confirmation(BaseModel):
    """Block placement of a mined transaction."""

    block_hash: str
    height: int
    confirmations: int = 0


class TransactionStatus(BaseModel):
    status: int
    confirmed: Optional[Confirmation] = None

    @property
    def is_mined(self) -> bool:
        return self.status == STATUS_OK and self.confirmed is not None


class TransactionMetadata(BaseModel):
    owner: str
    tags: List[Tag] = Field(default_factory=list)

    def tag_map(self) -> Dict[str, str]:
        """Tags as a dict; the last value wins for repeated names."""
        return {tag.name: tag.value for tag in self.tags}


class Block(BaseModel):
    """Block metadata. Only the timestamp (Unix seconds) is required."""

    model_config = {"extra": "allow"}

    timestamp: int


class TagFilter(BaseModel):
    """Exact-match predicate: the tag must equal one of the accepted values."""

    name: str
    values: List[str]


class IndexQuery(BaseModel):
    """A tag-filtered, optionally owner-restricted, paginated transaction search."""

    tags: List[TagFilter] = Field(default_factory=list)
    owners: List[str] = Field(default_factory=list)
    after: Optional[str] = None

    def with_cursor(self, cursor: Optional[str]) -> "IndexQuery":
        return self.model_copy(update={"after": cursor})

    def to_graphql(self) -> Dict[str, str]:
        """Render as a GraphQL request body for index gateways that speak GraphQL."""
        tag_clauses = ", ".join(
            f"{{ name: {json.dumps(f.name)}, values: {json.dumps(f.values)} }}"
            for f in self.tags
        )
        arguments = [f"tags: [{tag_clauses}]"]
        if self.owners:
            arguments.append(f"owners: {json.dumps(self.owners)}")
        if self.after:
            arguments.append(f"after: {json.dumps(self.after)}")

        query = (
            "query { transactions(" + ", ".join(arguments) + ") { "
            "edges { cursor node { id owner { address } tags { name value } } } } }"
        )
        return {"query": query}


class QueryEdge(BaseModel):
    cursor: str
    transaction_id: str
    owner_address: str
    tags: List[Tag] = Field(default_factory=list)

    def tag_value(self, name: str) -> Optional[str]:
        for tag in self.tags:
            if tag.name == name:
                return tag.value
        return None


class QueryPage(BaseModel):
    edges: List[QueryEdge] = Field(default_factory=list)
    cursor: Optional[str] = None

    @property
    def next_cursor(self) -> Optional[str]:
        """Cursor to resume after this page; falls back to the last edge's cursor."""
        if self.cursor:
            return self.cursor
        if self.edges:
            return self.edges[-1].cursor
        return None


class LedgerService(ABC):
    """Abstract ledger client. Implementations own signing, fees and transport."""

    @abstractmethod
    async def submit_transaction(self, data: bytes, tags: List[Tag], wallet: Dict[str, Any]) -> SubmissionResult:
        """Create, sign with `wallet` and post a transaction carrying `data` and `tags`."""
        pass

    @abstractmethod
    async def get_transaction_status(self, transaction_id: str) -> TransactionStatus:
        pass

    @abstractmethod
    async def get_transaction_metadata(self, transaction_id: str) -> TransactionMetadata:
        pass

    @abstractmethod
    async def get_transaction_data(self, transaction_id: str) -> bytes:
        pass

    @abstractmethod
    async def get_block(self, block_hash: str) -> Block:
        pass


class IndexQueryService(ABC):
    """Abstract tag index over ledger transactions."""

    @abstractmethod
    async def query(self, query: IndexQuery) -> QueryPage:
        """Return the page of matching edges following `query.after`."""
        pass
