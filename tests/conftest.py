"""Shared test fixtures: in-memory ledger and index fakes, configs and clients.

No network access: all ledger and index I/O is served from memory.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from permadoc.client import LedgerDocumentClient
from permadoc.config import PermadocConfig
from permadoc.services import (
    STATUS_OK,
    STATUS_PENDING,
    Block,
    Confirmation,
    IndexQuery,
    IndexQueryService,
    LedgerService,
    QueryEdge,
    QueryPage,
    SubmissionResult,
    Tag,
    TransactionMetadata,
    TransactionStatus,
)

ADMIN = "admin-addr"
WALLET = {"kty": "RSA", "n": "admin-modulus"}
BASE_TIMESTAMP = 1_600_000_000


class FakeLedger(LedgerService):
    """Ledger that mines each transaction after `pending_checks` status checks."""

    def __init__(self, owner: str = ADMIN, pending_checks: int = 0):
        self.owner = owner
        self.pending_checks = pending_checks
        self.reject_status: int | None = None
        self.submit_error: Exception | None = None
        self.transactions: dict[str, dict[str, Any]] = {}
        self.submissions = 0
        self.status_calls: dict[str, int] = {}

    def _store(self, data: bytes, tags: list[Tag], owner: str, pending: int) -> str:
        tx_id = f"tx-{len(self.transactions) + 1}"
        self.transactions[tx_id] = {
            "data": data,
            "tags": list(tags),
            "owner": owner,
            "pending": pending,
            "height": len(self.transactions) + 1,
        }
        return tx_id

    def seed(self, name: str, content: Any, version: int = 0, tags: dict[str, str] | None = None,
             owner: str = ADMIN, system_tags: bool = True, payload: bytes | None = None) -> str:
        """Store a mined transaction directly, bypassing the client."""
        tags = tags or {}
        wire_tags = [Tag(name=f"DOC_META_{k}", value=v) for k, v in tags.items()]
        if system_tags:
            wire_tags = [Tag(name="DOC_VERSION", value=str(version)), Tag(name="DOC_NAME", value=name)] + wire_tags
        if payload is None:
            payload = json.dumps({"name": name, "content": content, "version": version, "tags": tags}).encode()
        return self._store(payload, wire_tags, owner, pending=0)

    async def submit_transaction(self, data, tags, wallet):
        self.submissions += 1
        if self.submit_error is not None:
            raise self.submit_error
        assert wallet == WALLET
        tx_id = self._store(data, tags, self.owner, self.pending_checks)
        if self.reject_status is not None:
            del self.transactions[tx_id]
            return SubmissionResult(transaction_id=tx_id, status=self.reject_status)
        return SubmissionResult(transaction_id=tx_id, status=STATUS_OK)

    async def get_transaction_status(self, transaction_id):
        self.status_calls[transaction_id] = self.status_calls.get(transaction_id, 0) + 1
        tx = self.transactions.get(transaction_id)
        if tx is None:
            return TransactionStatus(status=404)
        if tx["pending"] > 0:
            tx["pending"] -= 1
            return TransactionStatus(status=STATUS_PENDING)
        return TransactionStatus(
            status=STATUS_OK,
            confirmed=Confirmation(block_hash=f"block-{transaction_id}", height=tx["height"], confirmations=1),
        )

    async def get_transaction_metadata(self, transaction_id):
        tx = self.transactions[transaction_id]
        return TransactionMetadata(owner=tx["owner"], tags=tx["tags"])

    async def get_transaction_data(self, transaction_id):
        return self.transactions[transaction_id]["data"]

    async def get_block(self, block_hash):
        tx_id = block_hash[len("block-"):]
        return Block(timestamp=BASE_TIMESTAMP + self.transactions[tx_id]["height"], height=self.transactions[tx_id]["height"])


class FakeIndex(IndexQueryService):
    """Index over a FakeLedger honouring tag filters, owners and offset cursors."""

    def __init__(self, ledger: FakeLedger, page_size: int = 10):
        self.ledger = ledger
        self.page_size = page_size
        self.queries: list[IndexQuery] = []

    def _matches(self, tx: dict[str, Any], query: IndexQuery) -> bool:
        if query.owners and tx["owner"] not in query.owners:
            return False
        tag_map = {t.name: t.value for t in tx["tags"]}
        return all(tag_map.get(f.name) in f.values for f in query.tags)

    async def query(self, query):
        self.queries.append(query)
        matches = [
            QueryEdge(cursor=str(i + 1), transaction_id=tx_id, owner_address=tx["owner"], tags=tx["tags"])
            for i, (tx_id, tx) in enumerate(
                (tx_id, tx) for tx_id, tx in self.ledger.transactions.items() if self._matches(tx, query)
            )
        ]
        offset = int(query.after or 0)
        page = matches[offset:offset + self.page_size]
        return QueryPage(edges=page)


class ScriptedIndex(IndexQueryService):
    """Index returning pre-built pages in order, regardless of the query."""

    def __init__(self, pages: list[list[QueryEdge]]):
        self.pages = pages
        self.calls = 0

    async def query(self, query):
        page = self.pages[self.calls] if self.calls < len(self.pages) else []
        self.calls += 1
        return QueryPage(edges=page)


def make_edge(tx_id: str, version: str | None = None, owner: str = ADMIN) -> QueryEdge:
    tags = [Tag(name="DOC_NAME", value="doc")]
    if version is not None:
        tags.append(Tag(name="DOC_VERSION", value=version))
    return QueryEdge(cursor=f"c-{tx_id}", transaction_id=tx_id, owner_address=owner, tags=tags)


@pytest.fixture
def config() -> PermadocConfig:
    return PermadocConfig(
        admin_address=ADMIN,
        cache_size=50,
        max_retries=3,
        backoff_base_delay_s=0.0,
        _env_file=None,
    )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def index(ledger: FakeLedger) -> FakeIndex:
    return FakeIndex(ledger)


@pytest.fixture
def client(ledger: FakeLedger, index: FakeIndex, config: PermadocConfig) -> LedgerDocumentClient:
    return LedgerDocumentClient(ledger, index, config, wallet=WALLET)


@pytest.fixture
def reader(ledger: FakeLedger, index: FakeIndex, config: PermadocConfig) -> LedgerDocumentClient:
    """A second, read-only client with a cold cache over the same ledger."""
    return LedgerDocumentClient(ledger, index, config)
