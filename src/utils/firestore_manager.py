import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from datetime import datetime, date
from decimal import Decimal

from google.cloud import firestore
from google.oauth2 import service_account

from src.utils.config import get_settings


def user_document_path(uid: str) -> str:
    return f"users/{uid}"


def trip_collection_path(uid: str) -> str:
    return f"{user_document_path(uid)}/trips"


def trip_document_path(uid: str, trip_id: str) -> str:
    return f"{trip_collection_path(uid)}/{trip_id}"


def _split_path(path: str) -> List[str]:
    segments = [s for s in (path or "").strip("/").split("/") if s]
    if not segments:
        raise ValueError("Document path must not be empty")
    return segments


class DocumentStore(ABC):
    """Hierarchical path store: even-length paths are documents, odd-length are collections."""

    def _document_segments(self, path: str) -> List[str]:
        segments = _split_path(path)
        if len(segments) % 2:
            raise ValueError(f"Not a document path: {path}")
        return segments

    def _collection_segments(self, path: str) -> List[str]:
        segments = _split_path(path)
        if not len(segments) % 2:
            raise ValueError(f"Not a collection path: {path}")
        return segments

    def _sanitize_for_firestore(self, value: Any) -> Any:
        """Recursively convert values into Firestore-friendly types.
        - datetime/date -> ISO string
        - Decimal -> float
        - set/tuple -> list
        - dict/list recurse
        """
        if isinstance(value, dict):
            return {k: self._sanitize_for_firestore(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._sanitize_for_firestore(v) for v in value]
        if isinstance(value, tuple) or isinstance(value, set):
            return [self._sanitize_for_firestore(v) for v in list(value)]
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        return value

    @abstractmethod
    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def set(self, path: str, value: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def update(self, path: str, partial: Dict[str, Any]) -> bool:
        ...

    @abstractmethod
    async def delete(self, path: str) -> bool:
        ...

    @abstractmethod
    async def list_children(self, path: str) -> List[Dict[str, Any]]:
        ...


class FirestoreManager(DocumentStore):
    """Lightweight wrapper around Firestore for trip persistence."""

    def __init__(self, client: Any = None):
        self.settings = get_settings()
        self.logger = logging.getLogger(__name__)
        if client is not None:
            self.client = client
            return
        project_id = self.settings.FIRESTORE_PROJECT_ID or self.settings.GOOGLE_CLOUD_PROJECT
        try:
            # Prefer explicit Firestore credentials if provided (split-project support)
            credentials = None
            if self.settings.FIRESTORE_CREDENTIALS:
                credentials = service_account.Credentials.from_service_account_file(
                    self.settings.FIRESTORE_CREDENTIALS
                )
            database = self.settings.FIRESTORE_DATABASE_ID or None  # default DB if None
            self.client = firestore.Client(project=project_id, credentials=credentials, database=database)
            self.logger.info("[firestore] Initialized client", extra={"project": project_id, "database": database or "(default)"})
        except Exception:
            self.logger.exception("[firestore] Failed to initialize client")
            raise

    def _document(self, path: str):
        return self.client.document(*self._document_segments(path))

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        snap = self._document(path).get()
        if not snap.exists:
            return None
        data = snap.to_dict() or {}
        data.setdefault("id", snap.id)
        return data

    async def set(self, path: str, value: Dict[str, Any]) -> None:
        self._document(path).set(self._sanitize_for_firestore(value))
        self.logger.info(f"[firestore] Saved {path}")

    async def update(self, path: str, partial: Dict[str, Any]) -> bool:
        doc_ref = self._document(path)
        if not doc_ref.get().exists:
            return False
        doc_ref.update(self._sanitize_for_firestore(partial))
        self.logger.info(f"[firestore] Updated {path}", extra={"fields": sorted(partial.keys())})
        return True

    async def delete(self, path: str) -> bool:
        doc_ref = self._document(path)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        self.logger.info(f"[firestore] Deleted {path}")
        return True

    async def list_children(self, path: str) -> List[Dict[str, Any]]:
        collection = self.client.collection(*self._collection_segments(path))
        children = []
        for snap in collection.stream():
            data = snap.to_dict() or {}
            data.setdefault("id", snap.id)
            children.append(data)
        return children


class InMemoryDocumentStore(DocumentStore):
    """Process-local store with the same path semantics; used without Firestore and in tests."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._documents: Dict[str, Dict[str, Any]] = {}

    def _key(self, path: str) -> str:
        return "/".join(self._document_segments(path))

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        key = self._key(path)
        data = self._documents.get(key)
        if data is None:
            return None
        data = copy.deepcopy(data)
        data.setdefault("id", key.rsplit("/", 1)[-1])
        return data

    async def set(self, path: str, value: Dict[str, Any]) -> None:
        self._documents[self._key(path)] = self._sanitize_for_firestore(copy.deepcopy(value))

    async def update(self, path: str, partial: Dict[str, Any]) -> bool:
        key = self._key(path)
        if key not in self._documents:
            return False
        self._documents[key].update(self._sanitize_for_firestore(copy.deepcopy(partial)))
        return True

    async def delete(self, path: str) -> bool:
        return self._documents.pop(self._key(path), None) is not None

    async def list_children(self, path: str) -> List[Dict[str, Any]]:
        prefix = "/".join(self._collection_segments(path)) + "/"
        children = []
        for key, data in self._documents.items():
            rest = key[len(prefix):] if key.startswith(prefix) else None
            if rest and "/" not in rest:
                child = copy.deepcopy(data)
                child.setdefault("id", rest)
                children.append(child)
        return children
