"""Tests for query.py — predicate construction, pagination and version ordering."""

from __future__ import annotations

import pytest

from permadoc.document import Document
from permadoc.query import (
    NAME_TAG,
    VERSION_TAG,
    build_index_query,
    candidate_transaction_ids,
    document_tags,
    paginate,
    sort_edges_by_version,
    user_tags_from,
)
from permadoc.services import IndexQuery

from .conftest import ADMIN, ScriptedIndex, make_edge


def _pages(*sizes: int):
    pages = []
    counter = 0
    for size in sizes:
        page = []
        for _ in range(size):
            counter += 1
            page.append(make_edge(f"tx-{counter}", "0"))
        pages.append(page)
    return pages


class TestBuildIndexQuery:
    def test_name_version_and_tags(self):
        query = build_index_query(["doc"], [2], {"color": "red"}, verified_only=True, admin_address=ADMIN)
        filters = {f.name: f.values for f in query.tags}
        assert filters == {"DOC_META_color": ["red"], NAME_TAG: ["doc"], VERSION_TAG: ["2"]}
        assert query.owners == [ADMIN]
        assert query.after is None

    def test_tags_only_unverified(self):
        query = build_index_query(user_tags={"a": "1"}, verified_only=False)
        assert [f.name for f in query.tags] == ["DOC_META_a"]
        assert query.owners == []

    def test_verified_requires_admin(self):
        with pytest.raises(ValueError):
            build_index_query(["doc"], verified_only=True, admin_address=None)

    def test_graphql_rendering(self):
        query = build_index_query(["doc"], [], None, verified_only=True, admin_address=ADMIN).with_cursor("abc")
        body = query.to_graphql()["query"]
        assert 'name: "DOC_NAME", values: ["doc"]' in body
        assert 'owners: ["admin-addr"]' in body
        assert 'after: "abc"' in body


class TestTags:
    def test_document_tags(self):
        doc = Document(name="doc", content="x", tags={"hasTag": "true"}, version=4)
        tags = {t.name: t.value for t in document_tags(doc)}
        assert tags == {VERSION_TAG: "4", NAME_TAG: "doc", "DOC_META_hasTag": "true"}

    def test_user_tags_round_trip(self):
        doc = Document(name="doc", content="x", tags={"a": "1", "b": "2"})
        tag_map = {t.name: t.value for t in document_tags(doc)}
        assert user_tags_from(tag_map) == {"a": "1", "b": "2"}


class TestVersionOrdering:
    def test_descending_with_missing_as_zero(self):
        edges = [make_edge("a", "2"), make_edge("b", "0"), make_edge("c", "5"), make_edge("d", None)]
        ordered = [e.transaction_id for e in sort_edges_by_version(edges)]
        assert ordered == ["c", "a", "b", "d"]

    def test_unparseable_version_sorts_as_zero(self):
        edges = [make_edge("a", "junk"), make_edge("b", "1")]
        assert [e.transaction_id for e in sort_edges_by_version(edges)] == ["b", "a"]

    def test_explicit_version_keeps_index_order(self):
        edges = [make_edge("a", "1"), make_edge("b", "3")]
        assert candidate_transaction_ids(edges, version_requested=True) == ["a", "b"]

    def test_candidates_deduplicated(self):
        edges = [make_edge("a", "1"), make_edge("b", "3"), make_edge("a", "1")]
        assert candidate_transaction_ids(edges, version_requested=False) == ["b", "a"]


class TestPaginate:
    @pytest.mark.asyncio
    async def test_stops_at_max_results(self):
        index = ScriptedIndex(_pages(25, 25, 3, 0))
        edges = await paginate(index, IndexQuery(), max_results=50)
        assert len(edges) == 50
        assert index.calls == 2

    @pytest.mark.asyncio
    async def test_stops_at_empty_page(self):
        index = ScriptedIndex(_pages(25, 25, 3, 0))
        edges = await paginate(index, IndexQuery(), max_results=60)
        assert len(edges) == 53
        assert index.calls == 4

    @pytest.mark.asyncio
    async def test_truncates_overshoot(self):
        index = ScriptedIndex(_pages(25, 25))
        edges = await paginate(index, IndexQuery(), max_results=30)
        assert len(edges) == 30
        assert [e.transaction_id for e in edges][-1] == "tx-30"

    @pytest.mark.asyncio
    async def test_follows_cursor(self, ledger, index):
        index.page_size = 2
        for i in range(5):
            ledger.seed(f"doc-{i}", "x")
        query = build_index_query(verified_only=True, admin_address=ADMIN)
        edges = await paginate(index, query, max_results=25)
        assert [e.transaction_id for e in edges] == [f"tx-{i}" for i in range(1, 6)]
        assert [q.after for q in index.queries] == [None, "2", "4", "5"]
