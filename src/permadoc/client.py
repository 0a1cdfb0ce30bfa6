"""
High-level document client for permadoc library.

This module provides the LedgerDocumentClient class, the primary interface
for creating, updating and fetching versioned documents stored as ledger
transactions. An admin wallet signs and funds every write on behalf of
callers; a client built without a wallet is read-only.
"""

import asyncio
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from .cache import DocumentCache
from .codec import DocumentCodec, JsonCodec
from .config import PermadocConfig, QueryOptions, load_config, load_wallet
from .confirmation import ConfirmationPoller, ConfirmationResult
from .document import Document
from .exceptions import (
    DocumentNotFoundError,
    NotADocumentError,
    PermadocError,
    ReadOnlyError,
    UnverifiedOwnerError,
    WriteRejectedError,
)
from .query import (
    NAME_TAG,
    VERSION_TAG,
    build_index_query,
    candidate_transaction_ids,
    document_tags,
    paginate,
    user_tags_from,
)
from .services import IndexQueryService, LedgerService
from .utils import timing_context


OptionsArg = Union[QueryOptions, Dict[str, Any], None]


class LedgerDocumentClient:
    """
    Versioned document management on top of a ledger and its tag index.

    The client exclusively owns its DocumentCache. Documents it returns are
    shared by reference with the cache.
    """

    def __init__(
        self,
        ledger: LedgerService,
        index: IndexQueryService,
        config: PermadocConfig,
        wallet: Optional[Dict[str, Any]] = None,
        cache: Optional[DocumentCache] = None,
        codec: Optional[DocumentCodec] = None,
    ):
        """
        Initialize LedgerDocumentClient.

        Args:
            ledger: Ledger service used for submission and transaction lookups
            index: Index query service used for name/tag lookups
            config: Deployment configuration
            wallet: Admin key material (loaded from `config.wallet_file` if None)
            cache: Cache instance (a new one of `config.cache_size` if None)
            codec: Payload codec (JSON if None)
        """
        self.ledger = ledger
        self.index = index
        self.config = config
        self.admin_address = config.admin_address
        self.codec = codec or JsonCodec()
        self.cache = cache if cache is not None else DocumentCache(max_size=config.cache_size)
        self.poller = ConfirmationPoller(
            ledger,
            self.cache,
            base_delay=config.backoff_base_delay_s,
            backoff_factor=config.backoff_factor,
            max_delay=config.backoff_max_delay_s,
        )
        self.default_options = config.query_options()

        if wallet is None and config.wallet_file:
            wallet = load_wallet(config.wallet_file)
        self._wallet = wallet

        mode = "read-only" if self.read_only else "read-write"
        logger.info(f"LedgerDocumentClient initialized for admin {self.admin_address} ({mode})")

    @property
    def read_only(self) -> bool:
        return self._wallet is None

    def _resolve_options(self, options: OptionsArg) -> QueryOptions:
        if options is None:
            return self.default_options
        if isinstance(options, QueryOptions):
            return options
        return self.default_options.merged(options)

    def _required_owner(self, opts: QueryOptions) -> Optional[str]:
        return self.admin_address if opts.verified_only else None

    # ==========================================
    # Write path
    # ==========================================

    async def _insert(self, document: Document) -> Document:
        """Submit a document as a new transaction, then mark it posted and cache it."""
        if self.read_only:
            raise ReadOnlyError("Client has no wallet configured; writes are disabled")

        data = self.codec.encode(document.to_wire_record())
        tags = document_tags(document)

        try:
            result = await self.ledger.submit_transaction(data, tags, self._wallet)
        except PermadocError:
            raise
        except Exception as e:
            logger.error(f"Submission of '{document.name}' v{document.version} failed: {e}")
            raise WriteRejectedError(
                f"Ledger submission failed: {e}",
                name=document.name,
            ) from e

        if not result.accepted:
            logger.error(f"Ledger rejected '{document.name}' v{document.version} with status {result.status}")
            raise WriteRejectedError(
                f"Ledger rejected transaction with status {result.status}",
                transaction_id=result.transaction_id,
                name=document.name,
                status=result.status,
            )

        previous_id = document.transaction_id
        document.transaction_id = result.transaction_id
        document.posted = True
        document.owner = self.admin_address
        document.client = self

        # The superseded transaction must not resolve to this (mutated) object
        if previous_id and previous_id != result.transaction_id:
            self.cache.invalidate(previous_id)
        self.cache.put(result.transaction_id, document)

        logger.info(f"Posted '{document.name}' v{document.version} as transaction {result.transaction_id}")
        return document

    async def add_document(self, name: str, content: Any, tags: Optional[Dict[str, str]] = None) -> Document:
        """
        Create a document at version 0 and submit it.

        Args:
            name: Document name
            content: Arbitrary content, serializable by the codec
            tags: User-defined metadata tags

        Returns:
            The posted Document

        Raises:
            ReadOnlyError: If no wallet is configured
            WriteRejectedError: If the ledger rejects the submission

        Example:
            doc = await client.add_document("Test Document", "Lorem Ipsum", {"hasTag": "true"})
        """
        with timing_context(f"add_document(name={name})"):
            document = Document(name=name, content=content, tags=dict(tags or {}), client=self)
            return await self._insert(document)

    async def update_document(self, document: Document) -> Document:
        """
        Submit the document's current state as a new transaction.

        A document whose exact version is already trusted in the cache is
        returned without resubmitting.

        Raises:
            ReadOnlyError: If no wallet is configured
            WriteRejectedError: If the ledger rejects the submission
        """
        if self.cache.is_valid(document.transaction_id, document.version):
            logger.debug(f"'{document.name}' v{document.version} already posted, skipping submission")
            return document

        with timing_context(f"update_document(name={document.name}, version={document.version})"):
            return await self._insert(document)

    # ==========================================
    # Read path
    # ==========================================

    def is_cached(self, transaction_id: Optional[str], desired_version: Optional[int] = None) -> bool:
        """Whether a trusted cache entry exists for the transaction (and version)."""
        return self.cache.is_valid(transaction_id, desired_version)

    async def poll_for_confirmation(self, transaction_id: Optional[str], max_retries: Optional[int] = None) -> ConfirmationResult:
        """
        Wait until a transaction is mined, trusting the cache when it can.

        Raises:
            InvalidRequestError: If no transaction id is given
            ConfirmationTimeoutError: If the retry budget is spent
        """
        retries = max_retries if max_retries is not None else self.default_options.max_retries
        return await self.poller.poll(transaction_id, retries, owner=self._required_owner(self.default_options))

    async def get_document_by_transaction_id(self, transaction_id: str, options: OptionsArg = None) -> Document:
        """
        Fetch a document by transaction id.

        Args:
            transaction_id: Ledger transaction id
            options: Query options (or a dict of overrides)

        Returns:
            The confirmed Document

        Raises:
            ConfirmationTimeoutError: If the transaction is not mined in time
            UnverifiedOwnerError: If verified_only and the owner is not the admin
            NotADocumentError: If the transaction is not a document
        """
        opts = self._resolve_options(options)

        cached = self.cache.get_valid(transaction_id, owner=self._required_owner(opts))
        if cached is not None:
            return cached

        with timing_context(f"get_document_by_transaction_id({transaction_id})"):
            # A fresh network read needs the block hash, so the cache fast path is skipped
            confirmation = await self.poller.poll(transaction_id, opts.max_retries, use_cache=False)

            metadata = await self.ledger.get_transaction_metadata(transaction_id)
            if opts.verified_only and metadata.owner != self.admin_address:
                raise UnverifiedOwnerError(
                    "Document is not verified: owner address mismatched",
                    transaction_id=transaction_id,
                    expected_owner=self.admin_address,
                    actual_owner=metadata.owner,
                )

            tag_map = metadata.tag_map()
            missing = [tag for tag in (NAME_TAG, VERSION_TAG) if tag not in tag_map]
            if missing:
                raise NotADocumentError(
                    f"Transaction {transaction_id} is not a document",
                    transaction_id=transaction_id,
                    missing=missing,
                )

            block, data = await asyncio.gather(
                self.ledger.get_block(confirmation.block_hash),
                self.ledger.get_transaction_data(transaction_id),
            )
            document = self._build_document(transaction_id, data, tag_map, metadata.owner)
            document.bump_timestamp(block.timestamp)

        self.cache.put(transaction_id, document)
        logger.info(f"Resolved '{document.name}' v{document.version} from transaction {transaction_id}")
        return document

    def _build_document(self, transaction_id: str, data: bytes, tag_map: Dict[str, str], owner: str) -> Document:
        try:
            record = self.codec.decode(data)
        except NotADocumentError as e:
            raise NotADocumentError(
                f"Transaction {transaction_id} payload is not a document: {e.message}",
                transaction_id=transaction_id,
                missing=e.missing,
            ) from e

        try:
            version = int(record["version"])
        except (TypeError, ValueError) as e:
            raise NotADocumentError(
                f"Transaction {transaction_id} has a non-integer version",
                transaction_id=transaction_id,
            ) from e

        name, tags = record["name"], record["tags"]
        if not isinstance(name, str) or not isinstance(tags, (dict, type(None))):
            raise NotADocumentError(
                f"Transaction {transaction_id} has a malformed name or tags field",
                transaction_id=transaction_id,
            )

        return Document(
            name=name,
            content=record["content"],
            tags=dict(tags or user_tags_from(tag_map)),
            version=version,
            transaction_id=transaction_id,
            posted=True,
            owner=owner,
            client=self,
        )

    async def _execute_query(
        self,
        names: List[str],
        versions: List[int],
        user_tags: Optional[Dict[str, str]],
        options: OptionsArg,
    ) -> List[Document]:
        opts = self._resolve_options(options)
        query = build_index_query(names, versions, user_tags, opts.verified_only, self.admin_address)

        with timing_context(f"execute_query(names={names}, versions={versions}, tags={user_tags})"):
            edges = await paginate(self.index, query, opts.max_results)
            if not edges:
                raise DocumentNotFoundError(
                    "No documents match the query",
                    name=names[0] if names else None,
                    version=versions[0] if versions else None,
                    tags=user_tags,
                )

            transaction_ids = candidate_transaction_ids(edges, version_requested=bool(versions))
            results = await asyncio.gather(
                *(self.get_document_by_transaction_id(tx_id, opts) for tx_id in transaction_ids),
                return_exceptions=True,
            )

        documents = []
        for tx_id, result in zip(transaction_ids, results):
            if isinstance(result, Document):
                documents.append(result)
            elif isinstance(result, Exception):
                logger.warning(f"Dropping candidate {tx_id}: {result}")
            else:
                raise result

        logger.info(f"Resolved {len(documents)}/{len(transaction_ids)} candidate documents")
        return documents[:opts.max_results]

    async def get_documents_by_name(
        self,
        name: str,
        version: Optional[int] = None,
        tags: Optional[Dict[str, str]] = None,
        options: OptionsArg = None,
    ) -> List[Document]:
        """
        Fetch documents by name, latest version first.

        Args:
            name: Document name
            version: Exact version to fetch (latest first if None)
            tags: User tags that must also match
            options: Query options (or a dict of overrides)

        Returns:
            Resolved documents; candidates that fail resolution are left out

        Raises:
            DocumentNotFoundError: If the index has no match at all
        """
        versions = [] if version is None else [version]
        return await self._execute_query([name], versions, tags, options)

    async def get_documents_by_tags(self, tags: Dict[str, str], options: OptionsArg = None) -> List[Document]:
        """
        Fetch documents whose user tags all match.

        Raises:
            DocumentNotFoundError: If the index has no match at all
        """
        return await self._execute_query([], [], tags, options)

    async def get_document_by_name(
        self,
        name: str,
        version: Optional[int] = None,
        tags: Optional[Dict[str, str]] = None,
        options: OptionsArg = None,
    ) -> Document:
        """
        Fetch the latest (or the given) version of a named document.

        Raises:
            DocumentNotFoundError: If no candidate resolves to a document
        """
        documents = await self.get_documents_by_name(name, version, tags, options)
        if not documents:
            raise DocumentNotFoundError(
                f"No resolvable document named '{name}'",
                name=name,
                version=version,
                tags=tags,
            )
        return documents[0]


def create_client(
    ledger: LedgerService,
    index: IndexQueryService,
    config: Optional[PermadocConfig] = None,
    wallet: Optional[Dict[str, Any]] = None,
) -> LedgerDocumentClient:
    """
    Create a LedgerDocumentClient, loading configuration from the environment if not given.

    Example:
        client = create_client(my_ledger, my_index, wallet=load_wallet("wallet.json"))
    """
    return LedgerDocumentClient(ledger, index, config or load_config(), wallet=wallet)
