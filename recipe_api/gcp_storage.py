from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore, storage

from .errors import StorageError

logger = logging.getLogger(__name__)

VALUE_FIELD = "value"


@contextmanager
def _translate_errors(operation: str, key: str) -> Iterator[None]:
    try:
        yield
    except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
        raise StorageError(f"{operation} {key!r} failed: {exc}") from exc


class FirestoreKeyValueStore:
    """Key-value store keeping one Firestore document per key."""

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "recipes",
        client: Optional[firestore.Client] = None,
    ) -> None:
        self._project = project
        self._collection_name = collection_name

        self._firestore_client = client if client is not None else firestore.Client(project=project)
        self._collection = self._firestore_client.collection(collection_name)

    @classmethod
    def from_env(cls) -> "FirestoreKeyValueStore":
        """Build a store from environment variables."""

        project = os.environ.get("GCP_PROJECT")
        collection_name = os.environ.get("RECIPES_COLLECTION", "recipes")
        logger.info("Using Firestore collection %r", collection_name)
        return cls(project=project, collection_name=collection_name)

    def get(self, key: str) -> Optional[bytes]:
        with _translate_errors("get", key):
            snapshot = self._collection.document(key).get()

        if not snapshot.exists:
            return None

        data = snapshot.to_dict() or {}
        value = data.get(VALUE_FIELD)
        if value is None:
            return None
        return bytes(value)

    def set(self, key: str, value: bytes) -> None:
        doc = {
            VALUE_FIELD: value,
            "written_at": firestore.SERVER_TIMESTAMP,
        }
        with _translate_errors("set", key):
            self._collection.document(key).set(doc)

    def delete(self, key: str) -> None:
        with _translate_errors("delete", key):
            self._collection.document(key).delete()


class CloudStorageKeyValueStore:
    """Key-value store keeping one Cloud Storage object per key."""

    def __init__(
        self,
        *,
        bucket_name: str,
        project: Optional[str] = None,
        prefix: str = "",
        client: Optional[storage.Client] = None,
    ) -> None:
        self._project = project
        self._bucket_name = bucket_name
        self._prefix = prefix

        self._storage_client = client if client is not None else storage.Client(project=project)
        self._bucket = self._storage_client.bucket(bucket_name)

    @classmethod
    def from_env(cls) -> "CloudStorageKeyValueStore":
        """Build a store from environment variables.

        ``GCS_BUCKET`` is required.
        """

        bucket_name = os.environ.get("GCS_BUCKET")
        if not bucket_name:
            raise RuntimeError("GCS_BUCKET must be set to use the Cloud Storage recipe store.")

        project = os.environ.get("GCP_PROJECT")
        prefix = os.environ.get("GCS_PREFIX", "")
        logger.info("Using Cloud Storage bucket %r", bucket_name)
        return cls(bucket_name=bucket_name, project=project, prefix=prefix)

    def get(self, key: str) -> Optional[bytes]:
        blob = self._bucket.blob(self._blob_name(key))
        try:
            return blob.download_as_bytes()
        except gcloud_exceptions.NotFound:
            return None
        except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
            raise StorageError(f"get {key!r} failed: {exc}") from exc

    def set(self, key: str, value: bytes) -> None:
        blob = self._bucket.blob(self._blob_name(key))
        with _translate_errors("set", key):
            blob.upload_from_string(value, content_type="application/json")

    def delete(self, key: str) -> None:
        blob = self._bucket.blob(self._blob_name(key))
        try:
            blob.delete()
        except gcloud_exceptions.NotFound:
            # Already gone.
            pass
        except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as exc:
            raise StorageError(f"delete {key!r} failed: {exc}") from exc

    def _blob_name(self, key: str) -> str:
        return f"{self._prefix}{key}"


__all__ = ["FirestoreKeyValueStore", "CloudStorageKeyValueStore"]
