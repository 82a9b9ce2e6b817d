"""
metrics.py

Topic quality metrics for EmbedTopicMiner.

- coherence        : UMass-style co-occurrence coherence, squashed into [0, 1]
- distinctiveness  : 1 - mean Jaccard overlap of a topic's terms with its peers
- diversity        : mean pairwise Jaccard distance across all topics
- coverage         : fraction of documents that landed in a topic
- silhouette       : per-topic mean silhouette coefficient in embedding space

Every metric returns a neutral value on degenerate input (no terms, no peers,
single-member topics) instead of raising.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Sequence, Set, Tuple

import numpy as np
from sklearn.metrics import pairwise_distances


# Number of terms compared by the Jaccard-based metrics.
JACCARD_TOP_TERMS = 20


def compute_coherence(
    terms: Sequence[str],
    documents: Sequence[str],
    top_n: int = 10,
) -> float:
    """
    UMass coherence of the top ``top_n`` terms over ``documents``.

    A term "occurs" in a document when it is a substring of the lowercased
    text. For every pair ``i > j`` with co-occurrence count ``c > 0`` and
    document frequency ``df_j > 0`` we accumulate ``ln((c + 1) / df_j)``.
    The mean over evaluated pairs is mapped through the logistic function.

    Returns
    -------
    float
        Normalised coherence in [0, 1]; 0.0 when fewer than two terms, no
        documents, or no co-occurring pairs.
    """
    if not terms or not documents:
        return 0.0

    eval_terms = [str(t).lower() for t in list(terms)[:top_n]]
    if len(eval_terms) < 2:
        return 0.0

    doc_freq, cooccur = _count_cooccurrences(eval_terms, documents)

    total = 0.0
    pairs = 0
    for i in range(len(eval_terms)):
        for j in range(i):
            c = cooccur.get((i, j), 0)
            df_j = doc_freq[j]
            if c > 0 and df_j > 0:
                total += math.log((c + 1.0) / df_j)
                pairs += 1

    if pairs == 0:
        return 0.0

    raw = total / pairs
    return 1.0 / (1.0 + math.exp(-raw))


def compute_distinctiveness(topic: Any, other_topics: Sequence[Any]) -> float:
    """
    How different ``topic``'s top terms are from every other topic's.

    ``topic`` itself is skipped if it appears in ``other_topics``.
    1.0 means no overlap (or nothing to compare against).
    """
    if not other_topics:
        return 1.0

    topic_terms = _top_term_set(topic)
    overlaps: List[float] = []
    for other in other_topics:
        if other.id == topic.id:
            continue
        overlaps.append(_jaccard_similarity(topic_terms, _top_term_set(other)))

    if not overlaps:
        return 1.0
    return 1.0 - (sum(overlaps) / len(overlaps))


def compute_diversity(topics: Sequence[Any]) -> float:
    """Mean pairwise Jaccard distance between topic term sets (0.0 below two topics)."""
    if len(topics) < 2:
        return 0.0

    term_sets = [_top_term_set(t) for t in topics]
    distances: List[float] = []
    for i in range(len(term_sets)):
        for j in range(i + 1, len(term_sets)):
            union = term_sets[i] | term_sets[j]
            if union:
                distances.append(1.0 - len(term_sets[i] & term_sets[j]) / len(union))
            else:
                distances.append(1.0)

    return sum(distances) / len(distances)


def compute_coverage(topics: Sequence[Any], total_documents: int) -> float:
    """Share of ``total_documents`` assigned to some topic."""
    if total_documents == 0:
        return 0.0
    return sum(t.size for t in topics) / float(total_documents)


def compute_silhouette_score(
    topic: Any,
    all_topics: Sequence[Any],
    embeddings: Any = None,
) -> float:
    """
    Mean silhouette coefficient of the points in ``topic``.

    For each point:
        a(i) = mean distance to the other members of its topic (0 if alone)
        b(i) = min over other topics of the mean distance to their members
        s(i) = (b - a) / max(a, b), or 0 when both are 0

    When there is no other non-empty topic, b(i) falls back to a(i) so the
    coefficient is 0.

    Parameters
    ----------
    topic:
        Topic whose members are scored (uses ``topic.embeddings``).
    all_topics:
        Every topic of the result set; ``topic`` itself is skipped by id.
    embeddings:
        Optional full embedding matrix, indexed like the original input.
        Topics without their own vectors (e.g. restored with
        ``Topic.from_dict``) take their rows from it via
        ``document_indices``.
    """
    own = _member_matrix(topic, embeddings)
    if own.shape[0] == 0:
        return 0.0

    n_own = own.shape[0]
    if n_own > 1:
        within = pairwise_distances(own, metric="euclidean")
        a = within.sum(axis=1) / (n_own - 1)
    else:
        a = np.zeros(1)

    other_means: List[np.ndarray] = []
    for other in all_topics:
        if other.id == topic.id:
            continue
        other_mat = _member_matrix(other, embeddings)
        if other_mat.shape[0] == 0:
            continue
        other_means.append(pairwise_distances(own, other_mat, metric="euclidean").mean(axis=1))

    b = np.min(np.vstack(other_means), axis=0) if other_means else a.copy()

    denom = np.maximum(a, b)
    scores = np.divide(b - a, denom, out=np.zeros_like(denom, dtype=float), where=denom > 0)
    return float(scores.mean())


# ---------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------


def _count_cooccurrences(
    terms: Sequence[str],
    documents: Sequence[str],
) -> Tuple[List[int], Dict[Tuple[int, int], int]]:
    doc_freq = [0] * len(terms)
    cooccur: Dict[Tuple[int, int], int] = {}

    for doc in documents:
        lowered = doc.lower()
        present = [term in lowered for term in terms]
        for i, hit in enumerate(present):
            if not hit:
                continue
            doc_freq[i] += 1
            for j in range(i):
                if present[j]:
                    cooccur[(i, j)] = cooccur.get((i, j), 0) + 1

    return doc_freq, cooccur


def _top_term_set(topic: Any) -> Set[str]:
    return set(list(topic.terms)[:JACCARD_TOP_TERMS])


def _jaccard_similarity(a: Set[str], b: Set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def _member_matrix(topic: Any, embeddings: Any = None) -> np.ndarray:
    if len(topic.embeddings) or embeddings is None:
        return _as_matrix(topic.embeddings)
    full = _as_matrix(embeddings)
    if full.shape[0] == 0:
        return full
    return full[list(topic.document_indices)]


def _as_matrix(vectors: Any) -> np.ndarray:
    mat = np.asarray(vectors, dtype=float)
    if mat.size == 0:
        return np.zeros((0, 0))
    if mat.ndim == 1:
        mat = mat.reshape(1, -1)
    return mat
