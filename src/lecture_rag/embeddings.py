from __future__ import annotations

from typing import Sequence

import numpy as np

from .schema import Chunk


def embedding_matrix(chunks: Sequence[Chunk]) -> np.ndarray:
    """Stack chunk embeddings into a `float64` matrix shaped `(len(chunks), dim)`."""
    return np.array([chunk.embedding for chunk in chunks], dtype=np.float64)


def cosine_similarity(query_vector: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Compute cosine similarity between one query vector and many vectors.

    Args:
        query_vector: Query embedding vector.
        matrix: Candidate embedding matrix where each row is one vector.

    Returns:
        A 1D array of cosine similarity scores aligned to matrix rows, clipped
        to `[-1, 1]`.
    """
    query_norm = np.linalg.norm(query_vector)
    matrix_norm = np.linalg.norm(matrix, axis=1)
    denominator = np.maximum(query_norm * matrix_norm, 1e-12)
    return np.clip((matrix @ query_vector) / denominator, -1.0, 1.0)
