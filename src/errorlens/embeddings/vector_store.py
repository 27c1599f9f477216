"""
FAISS-based similarity store for error embeddings.
Implements indexing, threshold search, and persistence operations.
"""
import pickle
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Dict, Any, Iterable, Protocol, Sequence, Union

import numpy as np
import faiss

from errorlens.core.models import ErrorRecord, NeighborMatch
from errorlens.core.exceptions import VectorStoreError
from errorlens.utils.logger import logger
from errorlens.config import settings

# float32 inner products of identical unit vectors can land just below 1.0
SIMILARITY_TOLERANCE = 1e-6

VectorLike = Union[Sequence[float], np.ndarray]


class SimilarityStore(Protocol):
    """
    Anything that can answer "which records are within a similarity
    threshold of this vector".

    Implementations return matches sorted by similarity descending, never
    return `exclude_id`, and only return matches with similarity >= threshold.
    They may raise on any failure; callers decide how to degrade.
    """

    def find_within_threshold(
        self,
        query_vector: VectorLike,
        exclude_id: Optional[str],
        threshold: float,
    ) -> List[NeighborMatch]:
        ...


class FAISSVectorStore:
    """
    Exact cosine-similarity store backed by a FAISS inner-product index.

    Vectors are L2-normalized on the way in, so inner product equals cosine
    similarity.
    """

    def __init__(self, dimension: Optional[int] = None):
        """
        Initialize vector store.

        Args:
            dimension: Embedding dimension (default: from settings)
        """
        self.dimension = dimension or settings.EMBEDDING_DIMENSION

        logger.info("Initializing FAISSVectorStore", dimension=self.dimension)

        self.index = self._create_index()

        self.error_ids: List[str] = []  # Maps index position to error_id
        self.id_to_index: Dict[str, int] = {}  # Maps error_id to index position

    def _create_index(self) -> faiss.Index:
        try:
            return faiss.IndexFlatIP(self.dimension)
        except Exception as e:
            raise VectorStoreError(f"Failed to create FAISS index: {e}")

    def __len__(self) -> int:
        return len(self.error_ids)

    def _to_matrix(self, vectors: Iterable[VectorLike]) -> np.ndarray:
        """Convert vectors to a normalized float32 matrix, validating shape."""
        try:
            matrix = np.array([np.asarray(v, dtype=np.float32) for v in vectors], dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise VectorStoreError(f"Malformed vector: {e}")

        if matrix.ndim != 2 or matrix.shape[1] != self.dimension:
            raise VectorStoreError(
                f"Embedding dimension mismatch: expected {self.dimension}, "
                f"got shape {matrix.shape}"
            )
        if not np.all(np.isfinite(matrix)):
            raise VectorStoreError("Vector contains NaN or infinite values")

        faiss.normalize_L2(matrix)
        return matrix

    def add_records(self, records: List[ErrorRecord]) -> int:
        """
        Add the embeddings of error records to the store.

        Records without an embedding are skipped.

        Args:
            records: Error records to index

        Returns:
            Number of vectors added
        """
        embedded = [r for r in records if r.has_embedding]
        skipped = len(records) - len(embedded)
        if skipped:
            logger.debug("Skipping records without embeddings", skipped=skipped)

        if not embedded:
            logger.warning("No embeddings provided to add_records")
            return 0

        duplicates = [r.error_id for r in embedded if r.error_id in self.id_to_index]
        seen = set()
        for r in embedded:
            if r.error_id in seen:
                duplicates.append(r.error_id)
            seen.add(r.error_id)
        if duplicates:
            raise VectorStoreError(f"Duplicate error ids: {sorted(set(duplicates))[:5]}")

        matrix = self._to_matrix(r.embedding for r in embedded)

        try:
            start_idx = len(self.error_ids)
            self.index.add(matrix)
        except Exception as e:
            raise VectorStoreError(f"Failed to add embeddings: {e}")

        for offset, record in enumerate(embedded):
            self.error_ids.append(record.error_id)
            self.id_to_index[record.error_id] = start_idx + offset

        logger.info(
            "Embeddings added successfully",
            total_vectors=len(self.error_ids),
            new_vectors=len(embedded),
        )
        return len(embedded)

    def find_within_threshold(
        self,
        query_vector: VectorLike,
        exclude_id: Optional[str],
        threshold: float,
    ) -> List[NeighborMatch]:
        """
        Find every stored record whose cosine similarity to the query is at
        least `threshold`.

        Args:
            query_vector: Query embedding
            exclude_id: Record id to leave out of the results (usually the query's own)
            threshold: Inclusive minimum similarity

        Returns:
            Matches sorted by similarity descending, ties by error_id ascending
        """
        if self.index.ntotal == 0:
            return []

        query = self._to_matrix([query_vector])

        try:
            lims, scores, indices = self.index.range_search(
                query, float(threshold) - 2 * SIMILARITY_TOLERANCE
            )
        except Exception as e:
            raise VectorStoreError(f"Range search failed: {e}")

        matches = []
        for score, idx in zip(scores[lims[0]:lims[1]], indices[lims[0]:lims[1]]):
            if idx < 0 or idx >= len(self.error_ids):
                continue
            error_id = self.error_ids[idx]
            if error_id == exclude_id:
                continue
            similarity = min(float(score), 1.0)
            if similarity + SIMILARITY_TOLERANCE < threshold:
                continue
            matches.append(NeighborMatch(error_id=error_id, similarity=similarity))

        matches.sort(key=lambda m: (-m.similarity, m.error_id))

        logger.debug(
            "Threshold search complete",
            threshold=threshold,
            results_found=len(matches),
        )
        return matches

    def search(self, query_vector: VectorLike, top_k: int = 5) -> List[NeighborMatch]:
        """
        Return the `top_k` most similar stored records.

        Args:
            query_vector: Query embedding
            top_k: Number of results to return

        Returns:
            Matches sorted by similarity descending
        """
        if self.index.ntotal == 0:
            logger.warning("Vector store is empty, cannot search")
            return []

        query = self._to_matrix([query_vector])

        try:
            scores, indices = self.index.search(query, min(top_k, self.index.ntotal))
        except Exception as e:
            raise VectorStoreError(f"Search failed: {e}")

        return [
            NeighborMatch(error_id=self.error_ids[idx], similarity=min(float(score), 1.0))
            for score, idx in zip(scores[0], indices[0])
            if 0 <= idx < len(self.error_ids)
        ]

    def save(self, filepath: Optional[Path] = None) -> Path:
        """
        Save vector store to disk.

        Args:
            filepath: Where to save (default: auto-generated in indexes_dir)

        Returns:
            Path where store was saved
        """
        if filepath is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filepath = settings.INDEXES_DIR / f"faiss_index_{timestamp}"

        filepath = Path(filepath)
        filepath.mkdir(parents=True, exist_ok=True)

        logger.info("Saving vector store", filepath=str(filepath))

        try:
            faiss.write_index(self.index, str(filepath / "index.faiss"))

            metadata = {
                'error_ids': self.error_ids,
                'id_to_index': self.id_to_index,
                'dimension': self.dimension,
            }
            with open(filepath / "metadata.pkl", 'wb') as f:
                pickle.dump(metadata, f)
        except Exception as e:
            raise VectorStoreError(f"Failed to save vector store: {e}")

        logger.info(
            "Vector store saved successfully",
            filepath=str(filepath),
            total_vectors=len(self.error_ids),
        )
        return filepath

    @classmethod
    def load(cls, filepath: Path) -> 'FAISSVectorStore':
        """
        Load vector store from disk.

        Args:
            filepath: Directory containing saved vector store

        Returns:
            Loaded FAISSVectorStore instance
        """
        filepath = Path(filepath)

        if not filepath.exists():
            raise VectorStoreError(f"Vector store not found: {filepath}")

        logger.info("Loading vector store", filepath=str(filepath))

        try:
            with open(filepath / "metadata.pkl", 'rb') as f:
                metadata = pickle.load(f)

            store = cls(dimension=metadata['dimension'])
            store.index = faiss.read_index(str(filepath / "index.faiss"))
            store.error_ids = metadata['error_ids']
            store.id_to_index = metadata['id_to_index']
        except Exception as e:
            raise VectorStoreError(f"Failed to load vector store: {e}")

        logger.info("Vector store loaded successfully", total_vectors=len(store.error_ids))
        return store

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the vector store.

        Returns:
            Dictionary with statistics
        """
        return {
            'total_vectors': self.index.ntotal,
            'dimension': self.dimension,
            'index_type': type(self.index).__name__,
            'unique_error_ids': len(set(self.error_ids)),
        }
