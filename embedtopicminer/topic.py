"""
topic.py

The Topic entity: one discovered cluster of documents.

A Topic is created by TopicModeler while grouping cluster assignments,
enriched in place with distinctive terms and a label, and then handed back to
the caller as read-only output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import numpy as np

from . import metrics

if TYPE_CHECKING:
    from .topic_labeler import LabelResult


class Topic:
    """
    A single topic (cluster) with its member documents.

    Attributes
    ----------
    id:
        Non-negative cluster id, unique within one fit result.
    document_indices:
        Indices into the original input arrays, in input order.
    documents, embeddings, metadata:
        Member texts, (possibly reduced) vectors and side information, all
        aligned with ``document_indices``. Empty after :meth:`from_dict`.
    terms:
        Distinctive terms, most distinctive first.
    label, description, confidence, themes, label_method:
        Written by :meth:`apply_label`.

    Derived values
    --------------
    ``centroid`` and ``coherence`` are computed lazily and cached.
    :meth:`set_terms` clears the coherence cache and :meth:`set_embeddings`
    clears the centroid cache.
    """

    def __init__(
        self,
        id: int,
        document_indices: Sequence[int],
        documents: Sequence[str],
        embeddings: Any,
        metadata: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> None:
        # Detached topics (restored from disk) carry neither documents nor embeddings.
        detached = len(documents) == 0 and len(embeddings) == 0
        if not detached and (
            len(documents) != len(document_indices)
            or len(embeddings) != len(document_indices)
        ):
            raise ValueError(
                f"Topic {id}: document_indices, documents and embeddings must "
                f"have the same length (got {len(document_indices)}, "
                f"{len(documents)}, {len(embeddings)})."
            )
        self.id = int(id)
        self.document_indices: List[int] = [int(i) for i in document_indices]
        self.documents: List[str] = list(documents)
        self.embeddings: List[List[float]] = [list(map(float, e)) for e in embeddings]
        self.metadata: List[Dict[str, Any]] = list(metadata) if metadata is not None else []

        self.terms: List[str] = []
        self.label: Optional[str] = None
        self.description: Optional[str] = None
        self.confidence: float = 0.0
        self.themes: List[str] = []
        self.label_method: Optional[str] = None

        self._centroid: Optional[List[float]] = None
        self._coherence: Optional[float] = None

    def __repr__(self) -> str:
        return f"Topic(id={self.id}, size={self.size}, label={self.label!r})"

    @property
    def size(self) -> int:
        return len(self.document_indices)

    # ------------------------------------------------------------------
    # Cached derived values
    # ------------------------------------------------------------------

    @property
    def centroid(self) -> List[float]:
        """Coordinate-wise mean of ``embeddings`` ([] when there are none)."""
        if self._centroid is None:
            if self.embeddings:
                self._centroid = np.asarray(self.embeddings, dtype=float).mean(axis=0).tolist()
            else:
                self._centroid = []
        return self._centroid

    @property
    def coherence(self) -> float:
        if self._coherence is None:
            self._coherence = metrics.compute_coherence(self.terms, self.documents)
        return self._coherence

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_terms(self, terms: Sequence[str]) -> None:
        self.terms = list(terms)
        self._coherence = None

    def set_embeddings(self, embeddings: Any) -> None:
        if len(embeddings) != len(self.document_indices):
            raise ValueError(
                f"Topic {self.id}: expected {len(self.document_indices)} "
                f"embeddings, got {len(embeddings)}."
            )
        self.embeddings = [list(map(float, e)) for e in embeddings]
        self._centroid = None

    def set_label(self, label: Optional[str]) -> None:
        self.label = label

    def apply_label(self, result: "LabelResult") -> None:
        """Write a normalised labeling result onto the topic in one step."""
        self.label = result.label
        self.description = result.description
        self.confidence = float(result.confidence)
        self.themes = list(result.themes)
        self.label_method = result.method

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def representative_docs(self, k: int = 3) -> List[str]:
        """The ``k`` documents whose embeddings are closest to the centroid."""
        if len(self.documents) <= k:
            return list(self.documents)

        emb = np.asarray(self.embeddings, dtype=float)
        dists = np.linalg.norm(emb - np.asarray(self.centroid), axis=1)
        order = np.argsort(dists, kind="stable")[:k]
        return [self.documents[i] for i in order]

    def distinctiveness(self, other_topics: Sequence["Topic"]) -> float:
        return metrics.compute_distinctiveness(self, other_topics)

    def summary(self) -> Dict[str, Any]:
        """Compact, printable overview of the topic."""
        return {
            "id": self.id,
            "label": self.label or f"Topic {self.id}",
            "size": self.size,
            "terms": self.terms[:10],
            "coherence": round(self.coherence, 3),
            "representative_docs": [
                doc[:100] + "..." if len(doc) > 100 else doc
                for doc in self.representative_docs(k=2)
            ],
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "document_indices": list(self.document_indices),
            "terms": list(self.terms),
            "centroid": list(self.centroid),
            "size": self.size,
            "coherence": float(self.coherence),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Topic":
        """
        Rebuild a Topic from :meth:`to_dict` output.

        Documents and embeddings are not part of the record, so the topic comes
        back without them. The stored centroid and coherence are restored into
        the caches so they survive the round trip.
        """
        indices = list(data.get("document_indices") or [])
        topic = cls(
            id=data["id"],
            document_indices=indices,
            documents=[],
            embeddings=[],
        )
        topic.set_label(data.get("label"))
        topic.set_terms(data.get("terms") or [])

        centroid = data.get("centroid")
        if centroid is not None:
            topic._centroid = [float(v) for v in centroid]
        coherence = data.get("coherence")
        if coherence is not None:
            topic._coherence = float(coherence)
        return topic
