"""
Query building and pagination over the transaction index.

Translates a logical lookup (by name, version, user tags, or a combination)
into index queries, walks result pages, and orders candidates so that the
latest version of a document comes first.
"""

from typing import Dict, Iterable, List, Optional

from loguru import logger

from .document import Document
from .services import IndexQuery, IndexQueryService, QueryEdge, Tag, TagFilter
from .utils import parse_version_tag, timing_context, unique_in_order


# System tag names
NAME_TAG = "DOC_NAME"
VERSION_TAG = "DOC_VERSION"
META_PREFIX = "DOC_META"


def meta_tag_name(key: str) -> str:
    """Namespaced wire name for a user tag."""
    return f"{META_PREFIX}_{key}"


def document_tags(document: Document) -> List[Tag]:
    """System tags plus namespaced user tags for a document submission."""
    tags = [
        Tag(name=VERSION_TAG, value=str(document.version)),
        Tag(name=NAME_TAG, value=document.name),
    ]
    for key, value in document.tags.items():
        tags.append(Tag(name=meta_tag_name(key), value=str(value)))
    return tags


def user_tags_from(tag_map: Dict[str, str]) -> Dict[str, str]:
    """Recover user tags from a transaction's wire tags."""
    prefix = f"{META_PREFIX}_"
    return {name[len(prefix):]: value for name, value in tag_map.items() if name.startswith(prefix)}


def build_index_query(
    names: Iterable[str] = (),
    versions: Iterable[int] = (),
    user_tags: Optional[Dict[str, str]] = None,
    verified_only: bool = True,
    admin_address: Optional[str] = None,
) -> IndexQuery:
    """
    Build an index query. Every filter is exact-match and filters are ANDed.

    Args:
        names: Accepted document names (empty for any)
        versions: Accepted versions (empty for any)
        user_tags: User tags that must all match
        verified_only: Restrict to transactions owned by the admin identity
        admin_address: Admin identity, required when verified_only

    Returns:
        IndexQuery without a cursor
    """
    filters = [
        TagFilter(name=meta_tag_name(key), values=[str(value)])
        for key, value in (user_tags or {}).items()
    ]

    names = list(names)
    if names:
        filters.append(TagFilter(name=NAME_TAG, values=names))

    versions = [str(v) for v in versions]
    if versions:
        filters.append(TagFilter(name=VERSION_TAG, values=versions))

    owners = []
    if verified_only:
        if not admin_address:
            raise ValueError("admin_address is required for verified-only queries")
        owners = [admin_address]

    return IndexQuery(tags=filters, owners=owners)


async def paginate(index: IndexQueryService, query: IndexQuery, max_results: int) -> List[QueryEdge]:
    """
    Fetch pages until a page comes back empty or `max_results` edges are collected.

    Args:
        index: Index query service
        query: Query to run (its cursor is the starting point)
        max_results: Bound on accumulated edges

    Returns:
        At most `max_results` edges in index order
    """
    edges: List[QueryEdge] = []
    cursor = query.after
    pages = 0

    with timing_context(f"paginate(max_results={max_results})"):
        while len(edges) < max_results:
            page = await index.query(query.with_cursor(cursor))
            pages += 1
            if not page.edges:
                break
            edges.extend(page.edges)
            cursor = page.next_cursor
            if cursor is None:
                break

    logger.debug(f"Collected {len(edges)} edges over {pages} page(s)")
    return edges[:max_results]


def edge_version(edge: QueryEdge) -> int:
    return parse_version_tag(edge.tag_value(VERSION_TAG))


def sort_edges_by_version(edges: List[QueryEdge]) -> List[QueryEdge]:
    """Latest first. Missing or unparseable versions count as 0; ties keep index order."""
    return sorted(edges, key=edge_version, reverse=True)


def candidate_transaction_ids(edges: List[QueryEdge], version_requested: bool) -> List[str]:
    """Order candidates (latest first unless a version was requested) and drop duplicates."""
    ordered = edges if version_requested else sort_edges_by_version(edges)
    return unique_in_order(edge.transaction_id for edge in ordered)
