"""
Payload codecs for document wire records.

The engine never inspects document content; it hands the wire record to a
codec and stores the resulting bytes verbatim as the transaction payload.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict

from .exceptions import NotADocumentError


WIRE_FIELDS = ("name", "content", "version", "tags")


class DocumentCodec(ABC):
    """Abstract codec between wire records and transaction payload bytes."""

    @abstractmethod
    def encode(self, record: Dict[str, Any]) -> bytes:
        pass

    @abstractmethod
    def decode(self, data: bytes) -> Dict[str, Any]:
        pass


class JsonCodec(DocumentCodec):
    """UTF-8 JSON codec. Content must be JSON serializable."""

    def encode(self, record: Dict[str, Any]) -> bytes:
        return json.dumps(record, ensure_ascii=False).encode("utf-8")

    def decode(self, data: bytes) -> Dict[str, Any]:
        try:
            record = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise NotADocumentError(f"Transaction payload is not a JSON document: {e}") from e

        if not isinstance(record, dict):
            raise NotADocumentError("Transaction payload is not a JSON object")

        missing = [field for field in WIRE_FIELDS if field not in record]
        if missing:
            raise NotADocumentError("Transaction payload is missing document fields", missing=missing)
        return record
