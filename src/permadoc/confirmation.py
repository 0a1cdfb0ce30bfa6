"""
Confirmation polling for submitted transactions.

A transaction is not queryable until it has been mined, and mining takes an
unbounded amount of time. The poller asks the ledger for the status of a
transaction with exponential backoff until it reports mined or the retry
budget is spent.

State machine:

    UNCONFIRMED --(trusted cache entry)--> CACHED
    UNCONFIRMED --(status mined)---------> CONFIRMED
    UNCONFIRMED --(pending / error)------> UNCONFIRMED (retry)
    UNCONFIRMED --(budget spent)---------> EXHAUSTED (ConfirmationTimeoutError)

CACHED trusts that a document the client itself posted or resolved will be
mined; no network call is made on that branch. When an owner is required,
only entries signed by that owner qualify. Errors raised by the ledger
adapter count as failed attempts, except TypeError, AttributeError and
NameError, which propagate at once.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from .cache import DocumentCache
from .exceptions import ConfirmationTimeoutError, InvalidRequestError
from .services import LedgerService, TransactionStatus
from .utils import compute_backoff_delay


class ConfirmationState(Enum):
    UNCONFIRMED = "unconfirmed"
    CACHED = "cached"
    CONFIRMED = "confirmed"
    EXHAUSTED = "exhausted"


@dataclass
class ConfirmationResult:
    """Outcome of a poll. `status` is None on the CACHED branch."""
    transaction_id: str
    state: ConfirmationState
    attempts: int = 0
    status: Optional[TransactionStatus] = None

    @property
    def block_hash(self) -> Optional[str]:
        if self.status is not None and self.status.confirmed is not None:
            return self.status.confirmed.block_hash
        return None


class ConfirmationPoller:
    """Waits for transactions to be mined using bounded exponential backoff."""

    def __init__(
        self,
        ledger: LedgerService,
        cache: DocumentCache,
        base_delay: float = 0.1,
        backoff_factor: float = 2.0,
        max_delay: float = 10.0,
    ):
        self.ledger = ledger
        self.cache = cache
        self.base_delay = base_delay
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay

    async def poll(
        self,
        transaction_id: Optional[str],
        max_retries: int = 10,
        use_cache: bool = True,
        owner: Optional[str] = None,
    ) -> ConfirmationResult:
        """
        Wait until a transaction is mined.

        Args:
            transaction_id: Ledger transaction id
            max_retries: Number of status checks before giving up
            use_cache: Whether a trusted cache entry may stand in for confirmation
            owner: Address a cache entry must be signed by to stand in, if any

        Returns:
            ConfirmationResult in state CACHED or CONFIRMED

        Raises:
            InvalidRequestError: If no transaction id is given
            ConfirmationTimeoutError: If the transaction is not mined in time
            TypeError, AttributeError: Raised by the ledger adapter itself; never retried
        """
        if not transaction_id:
            raise InvalidRequestError("Document has not been posted; call update() first")
        if max_retries < 1:
            raise InvalidRequestError(f"max_retries must be >= 1, got {max_retries}")

        if use_cache and self.cache.is_valid(transaction_id, owner=owner):
            logger.debug(f"Transaction {transaction_id} trusted from cache, skipping confirmation")
            return ConfirmationResult(transaction_id, ConfirmationState.CACHED)

        last_status: Optional[int] = None
        last_error: Optional[Exception] = None

        for attempt in range(max_retries):
            try:
                status = await self.ledger.get_transaction_status(transaction_id)
            except (TypeError, AttributeError, NameError) as e:
                logger.error(f"Status check for {transaction_id} raised {type(e).__name__}, not retrying: {e}")
                raise
            except Exception as e:
                last_error = e
                logger.warning(f"Status check for {transaction_id} failed on attempt {attempt + 1}/{max_retries}: {e}")
            else:
                if status.is_mined:
                    logger.debug(f"Transaction {transaction_id} mined after {attempt + 1} attempt(s)")
                    return ConfirmationResult(transaction_id, ConfirmationState.CONFIRMED, attempt + 1, status)
                last_status = status.status
                logger.debug(f"Transaction {transaction_id} pending (status {status.status}), attempt {attempt + 1}/{max_retries}")

            if attempt < max_retries - 1:
                await asyncio.sleep(
                    compute_backoff_delay(attempt, self.base_delay, self.backoff_factor, self.max_delay)
                )

        logger.error(f"Transaction {transaction_id} not confirmed after {max_retries} attempts")
        raise ConfirmationTimeoutError(
            f"Transaction {transaction_id} was not mined after {max_retries} attempts",
            transaction_id=transaction_id,
            attempts=max_retries,
            last_status=last_status,
            last_error=last_error,
        )
