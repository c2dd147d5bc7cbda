"""
Vector Database Module

Persists one enrolled template per identity using a local JSON file or
ChromaDB. Writing an existing identity id replaces it.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import chromadb
import numpy as np

from .descriptor import Descriptor
from .exceptions import StoreWriteFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrolledIdentity:
    identity_id: str
    name: str
    descriptor: Descriptor


class VectorStore:
    """Key-value store from identity id to (name, descriptor)."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize vector store.

        Args:
            config: Configuration dictionary with vector store settings
        """
        self.config = config
        self.vector_config = config.get('vector_store', {}) or {}
        self.storage_config = config.get('storage', {}) or {}

        self.backend = self.vector_config.get('backend', 'local')
        self.collection_name = self.vector_config.get('collection', 'enrolled_identities')

        # Storage paths
        self.embeddings_path = self.storage_config.get('embeddings_path', 'data/embeddings')
        self.database_file = self.storage_config.get('database_file', 'data/identities.json')

        self._lock = threading.RLock()
        self._records: Dict[str, EnrolledIdentity] = {}

        self._ensure_directories()

        if self.backend == 'chromadb':
            self.chroma_client = chromadb.PersistentClient(path=self.embeddings_path)
            self.collection = self.chroma_client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"}
            )
        elif self.backend != 'local':
            raise ValueError(f"Unsupported vector store backend: {self.backend}")

        self.load_database()

        logger.info(f"Vector store initialized with backend: {self.backend}")

    def _ensure_directories(self):
        """Create necessary directories if they don't exist."""
        if self.backend == 'chromadb':
            os.makedirs(self.embeddings_path, exist_ok=True)
        else:
            parent = os.path.dirname(self.database_file)
            if parent:
                os.makedirs(parent, exist_ok=True)

    def put(self, identity_id: str, name: str, descriptor: Descriptor):
        """
        Insert or replace the template for an identity.

        The new record becomes visible to readers only after it has been
        persisted.

        Args:
            identity_id: Unique identity key
            name: Display name
            descriptor: Enrollment template

        Raises:
            StoreWriteFailed: If the record could not be persisted
        """
        identity_id = str(identity_id)
        record = EnrolledIdentity(identity_id=identity_id, name=str(name),
                                  descriptor=Descriptor(descriptor))
        if record.descriptor.dim == 0:
            raise StoreWriteFailed("Refusing to store an empty descriptor")

        with self._lock:
            updated = dict(self._records)
            updated[identity_id] = record
            try:
                if self.backend == 'chromadb':
                    self.collection.upsert(
                        ids=[identity_id],
                        embeddings=[record.descriptor.values.tolist()],
                        metadatas=[{
                            'name': record.name,
                            'embedding_size': record.descriptor.dim,
                            'timestamp': datetime.now().isoformat()
                        }]
                    )
                else:
                    self._write_file(updated)
            except Exception as e:
                logger.error(f"Failed to store identity '{identity_id}': {e}")
                raise StoreWriteFailed(f"Failed to store identity '{identity_id}': {e}") from e

            self._records = updated

        logger.info(f"Stored identity '{identity_id}' ({record.name})")

    def get(self, identity_id: str) -> Optional[EnrolledIdentity]:
        with self._lock:
            return self._records.get(str(identity_id))

    def get_all(self) -> Dict[str, EnrolledIdentity]:
        """Snapshot of all enrolled identities keyed by id."""
        with self._lock:
            return dict(self._records)

    def descriptors(self) -> Dict[str, Descriptor]:
        """Candidate mapping of identity id to template, for recognition."""
        with self._lock:
            return {identity_id: record.descriptor for identity_id, record in self._records.items()}

    def delete(self, identity_id: str) -> bool:
        """
        Remove an identity.

        Args:
            identity_id: Identity key

        Returns:
            True if the identity existed and was removed

        Raises:
            StoreWriteFailed: If the removal could not be persisted
        """
        identity_id = str(identity_id)
        with self._lock:
            if identity_id not in self._records:
                return False

            updated = dict(self._records)
            del updated[identity_id]
            try:
                if self.backend == 'chromadb':
                    self.collection.delete(ids=[identity_id])
                else:
                    self._write_file(updated)
            except Exception as e:
                logger.error(f"Failed to delete identity '{identity_id}': {e}")
                raise StoreWriteFailed(f"Failed to delete identity '{identity_id}': {e}") from e

            self._records = updated

        logger.info(f"Removed identity '{identity_id}'")
        return True

    def _write_file(self, records: Dict[str, EnrolledIdentity]):
        data = {
            'version': '1.0',
            'save_timestamp': datetime.now().isoformat(),
            'identities': [
                {
                    'id': record.identity_id,
                    'name': record.name,
                    'embedding': record.descriptor.to_text()
                }
                for record in records.values()
            ]
        }

        directory = os.path.dirname(os.path.abspath(self.database_file))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.database_file)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def load_database(self) -> bool:
        """
        Load enrolled identities from the backend.

        Returns:
            True if existing data was loaded
        """
        if self.backend == 'chromadb':
            return self._load_chromadb()
        return self._load_file()

    def _load_file(self) -> bool:
        if not os.path.exists(self.database_file):
            logger.info("No existing database found, starting fresh")
            return False

        with open(self.database_file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        records = {}
        for entry in data.get('identities', []):
            identity_id = str(entry['id'])
            records[identity_id] = EnrolledIdentity(
                identity_id=identity_id,
                name=entry.get('name', ''),
                descriptor=Descriptor.from_text(entry.get('embedding', ''))
            )

        with self._lock:
            self._records = records

        logger.info(f"Loaded {len(records)} identities from {self.database_file}")
        return True

    def _load_chromadb(self) -> bool:
        result = self.collection.get(include=['embeddings', 'metadatas'])
        ids = result.get('ids') or []
        if not ids:
            logger.info("No existing identities in ChromaDB collection, starting fresh")
            return False

        embeddings = result.get('embeddings')
        metadatas = result.get('metadatas') or [{}] * len(ids)

        records = {}
        for identity_id, embedding, metadata in zip(ids, embeddings, metadatas):
            records[identity_id] = EnrolledIdentity(
                identity_id=identity_id,
                name=(metadata or {}).get('name', ''),
                descriptor=Descriptor(np.asarray(embedding, dtype=np.float32))
            )

        with self._lock:
            self._records = records

        logger.info(f"Loaded {len(records)} identities from ChromaDB collection '{self.collection_name}'")
        return True

    def get_statistics(self) -> Dict[str, Any]:
        """Get database statistics."""
        with self._lock:
            dims = sorted({record.descriptor.dim for record in self._records.values()})
            return {
                'total_identities': len(self._records),
                'embedding_dimension': dims[0] if len(dims) == 1 else dims or None,
                'backend': self.backend,
            }
