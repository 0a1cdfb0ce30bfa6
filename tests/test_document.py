"""Tests for document.py — Document entity and its update lifecycle."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from permadoc.document import Document
from permadoc.exceptions import InvalidRequestError, WriteRejectedError


class TestWireRecord:
    def test_only_persisted_fields(self):
        doc = Document(name="doc", content={"a": 1}, tags={"k": "v"}, version=3,
                       transaction_id="tx-9", posted=True)
        assert doc.to_wire_record() == {"name": "doc", "content": {"a": 1}, "version": 3, "tags": {"k": "v"}}

    def test_tags_are_copied(self):
        doc = Document(name="doc", content="x", tags={"k": "v"})
        record = doc.to_wire_record()
        record["tags"]["k"] = "changed"
        assert doc.tags == {"k": "v"}


class TestLifecycle:
    def test_new_document_is_unposted(self):
        doc = Document(name="doc", content="x")
        assert doc.version == 0
        assert doc.posted is False
        assert doc.transaction_id is None
        assert doc.timestamp is None

    def test_negative_version_rejected(self):
        with pytest.raises(InvalidRequestError):
            Document(name="doc", content="x", version=-1)

    def test_bump_timestamp(self):
        doc = Document(name="doc", content="x")
        doc.bump_timestamp(1_600_000_000)
        assert doc.timestamp == datetime(2020, 9, 13, 12, 26, 40, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_update_requires_client(self):
        doc = Document(name="doc", content="x")
        with pytest.raises(InvalidRequestError):
            await doc.update("y")
        assert doc.version == 0


class TestUpdate:
    @pytest.mark.asyncio
    async def test_version_after_n_updates(self, client):
        doc = await client.add_document("doc", "v0", {})
        for i in range(1, 6):
            await doc.update(f"v{i}")
        assert doc.version == 5
        assert doc.content == "v5"
        assert doc.posted is True

    @pytest.mark.asyncio
    async def test_update_produces_new_transaction(self, client, ledger):
        doc = await client.add_document("doc", "v0", {})
        first_id = doc.transaction_id
        await doc.update("v1")
        assert doc.transaction_id != first_id
        assert ledger.submissions == 2
        # the old transaction still holds version 0
        assert b'"version": 0' in ledger.transactions[first_id]["data"]

    @pytest.mark.asyncio
    async def test_failed_update_keeps_mutation(self, client, ledger):
        doc = await client.add_document("doc", "v0", {})
        ledger.reject_status = 500
        with pytest.raises(WriteRejectedError):
            await doc.update("v1")
        assert doc.version == 1
        assert doc.content == "v1"
        assert doc.posted is False
