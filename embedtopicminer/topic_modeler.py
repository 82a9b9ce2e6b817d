"""
topic_modeler.py

Core topic modeling for EmbedTopicMiner:
- Takes pre-computed document embeddings + the document texts.
- Optionally reduces dimensionality with an injected reducer (e.g. UMAP),
  after validating every embedding and dropping non-finite rows.
- Clusters with an injected clusterer (e.g. HDBSCAN); -1 marks outliers.
- Builds one Topic per cluster, ordered by id.
- Extracts distinctive terms per topic with c-TF-IDF.
- Labels each topic with a TopicLabeler (term-based, LLM-based or hybrid).

Besides `fit`, the modeler can assign new points to existing topics
(`transform`), report outliers, summarise topics as DataFrames, compute
quality metrics, and save/load topic metadata as JSON.
"""

from __future__ import annotations

import numbers
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field
from sklearn.metrics import pairwise_distances

from . import metrics
from .backends import HDBSCANClusterer, build_umap_reducer
from .labeling_strategies import LabelingMethod
from .term_extractor import TermExtractor
from .topic import Topic
from .topic_labeler import TopicLabeler


OUTLIER = -1
MIN_VIABLE_SAMPLES = 10
MAX_REDUCED_COMPONENTS = 50

TOPIC_INFO_COLUMNS = [
    "topic_id",
    "label",
    "size",
    "coherence",
    "distinctiveness",
    "top_terms",
    "description",
    "confidence",
    "method",
]
DOCUMENT_INFO_COLUMNS = ["document_index", "cluster_id", "topic_label", "is_outlier", "document"]


# ---------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------


@dataclass
class EmbeddingQualityReport:
    """
    Outcome of embedding validation before dimensionality reduction.

    Attributes
    ----------
    n_total:
        Number of embeddings received.
    valid_indices:
        Indices of embeddings that are finite numeric vectors of the expected
        width. Only these are reduced and clustered.
    discarded_indices:
        Indices that were excluded; they are reported as outliers.
    invalid_count, nan_count, inf_count:
        Discards by category: non-numeric / wrong shape, NaN, infinite.
    """

    n_total: int
    valid_indices: List[int] = field(default_factory=list)
    discarded_indices: List[int] = field(default_factory=list)
    invalid_count: int = 0
    nan_count: int = 0
    inf_count: int = 0

    @property
    def n_valid(self) -> int:
        return len(self.valid_indices)

    @property
    def n_discarded(self) -> int:
        return len(self.discarded_indices)


class SavedTopic(BaseModel):
    id: int
    label: Optional[str] = None
    document_indices: List[int] = Field(default_factory=list)
    terms: List[str] = Field(default_factory=list)
    centroid: List[float] = Field(default_factory=list)
    size: int
    coherence: float


class SavedConfig(BaseModel):
    min_cluster_size: int
    min_samples: int
    reduce_dimensions: bool
    n_components: int
    labeling_method: str


class SavedTopicSet(BaseModel):
    """JSON document written by :meth:`TopicModeler.save`."""

    topics: List[SavedTopic]
    config: SavedConfig


# ---------------------------------------------------------------------
# TopicModeler – orchestration engine
# ---------------------------------------------------------------------


class TopicModeler:
    """
    Embedding-based topic discovery.

    Pipeline of :meth:`fit`
    -----------------------
    1. (optional) validate + reduce embeddings with the injected reducer
    2. cluster with the injected clusterer
    3. group documents into Topic objects (outliers excluded), sorted by id
    4. extract distinctive terms per topic (c-TF-IDF against the full corpus)
    5. label every topic

    Design philosophy
    -----------------
    - Collaborators are injected, not discovered: pass a clusterer (and
      optionally a reducer and a generative client) that is already built.
      :meth:`from_defaults` builds the usual HDBSCAN + UMAP pair for you.
    - Labeling never fails a run. Reduction and clustering failures do,
      with an explanation of what to adjust.
    - One instance holds the state of its last :meth:`fit`; do not share a
      single instance between concurrent fits.
    """

    def __init__(
        self,
        clusterer: Any,
        *,
        reducer: Optional[Any] = None,
        min_cluster_size: int = 5,
        min_samples: int = 3,
        reduce_dimensions: bool = True,
        n_components: int = 50,
        n_neighbors: int = 15,
        labeling_method: Union[str, LabelingMethod] = LabelingMethod.HYBRID,
        llm_client: Optional[Any] = None,
        term_extractor: Optional[TermExtractor] = None,
        top_n_terms: int = 20,
        n_label_documents: int = 3,
        random_state: int = 42,
        logger: Optional[Callable[[str], None]] = None,
        verbose: bool = False,
    ) -> None:
        """
        Parameters
        ----------
        clusterer:
            Object with ``fit_predict(X) -> labels`` where ``-1`` marks
            outliers. If it also has ``approximate_predict(X)``, it is used by
            :meth:`transform`. Required.
        reducer:
            Object with ``fit_transform(X)`` (e.g. ``umap.UMAP``). If it has
            ``get_params``/``set_params``, ``n_components`` and ``n_neighbors``
            are lowered automatically for small datasets. If None, reduction
            is unavailable and embeddings are clustered as-is.
        min_cluster_size, min_samples:
            Clusterer settings recorded in :attr:`config` and in saved files.
            They are used to build the clusterer in :meth:`from_defaults` and
            :meth:`load`.
        reduce_dimensions:
            Whether to reduce embeddings wider than ``n_components``.
        n_components, n_neighbors:
            Target dimensionality and neighborhood size for the reducer.
        labeling_method:
            ``"term_based"``/``"fast"``, ``"llm_based"``/``"quality"`` or
            ``"hybrid"`` (default, also used for unknown names).
        llm_client:
            Optional generative client (see :class:`~embedtopicminer.llm_adapter.LLMAdapter`).
        term_extractor:
            Custom :class:`TermExtractor` (stop words, length bounds).
        top_n_terms:
            Number of distinctive terms stored per topic.
        n_label_documents:
            Number of topic documents shown to the labeler.
        random_state:
            Seed recorded in :attr:`config` and used by :meth:`from_defaults`.
        logger:
            Optional logging callback taking a single string. This allows you
            to plug in different UIs:

            - Console:   `logger=None` (falls back to `print`)
            - Streamlit: `logger=lambda msg: st.markdown(msg)`
        verbose:
            Log pipeline progress.
        """
        if clusterer is None or not callable(getattr(clusterer, "fit_predict", None)):
            raise ValueError(
                "TopicModeler requires a clusterer with a `fit_predict(X)` method.\n"
                "Pass one explicitly, e.g. "
                "`TopicModeler(HDBSCANClusterer(min_cluster_size=5, min_samples=3))`, "
                "or use `TopicModeler.from_defaults(...)` (requires 'hdbscan')."
            )
        if reducer is not None and not callable(getattr(reducer, "fit_transform", None)):
            raise ValueError(
                "reducer must provide a `fit_transform(X)` method "
                "(e.g. umap.UMAP or sklearn.decomposition.PCA)."
            )

        self.clusterer = clusterer
        self.reducer = reducer
        self.min_cluster_size = min_cluster_size
        self.min_samples = min_samples
        self.reduce_dimensions = reduce_dimensions
        self.n_components = n_components
        self.n_neighbors = n_neighbors
        self.labeling_method = LabelingMethod.from_name(labeling_method)
        self.top_n_terms = top_n_terms
        self.n_label_documents = n_label_documents
        self.random_state = random_state
        self.verbose = verbose

        # Optional logger (UI-agnostic)
        self.logger = logger

        self.term_extractor = term_extractor or TermExtractor()
        self.labeler = TopicLabeler(
            method=self.labeling_method,
            llm_client=llm_client,
            log_fn=lambda msg: self._log(msg, self.verbose),
        )

        if self.reduce_dimensions and self.reducer is None:
            self._log(
                "[TopicModeler] reduce_dimensions=True but no reducer was supplied; "
                "embeddings will be clustered without reduction.",
                verbose,
            )

        # Run state of the last fit
        self.topics: List[Topic] = []
        self.embedding_report: Optional[EmbeddingQualityReport] = None
        self._documents: List[str] = []
        self._metadata: List[Dict[str, Any]] = []
        self._cluster_ids: Optional[np.ndarray] = None
        self._reduced = False
        self._clusterer_fitted = False

    @classmethod
    def from_defaults(
        cls,
        *,
        min_cluster_size: int = 5,
        min_samples: int = 3,
        reduce_dimensions: bool = True,
        n_components: int = 50,
        n_neighbors: int = 15,
        random_state: int = 42,
        **kwargs: Any,
    ) -> "TopicModeler":
        """
        HDBSCAN clustering (+ UMAP reduction when ``reduce_dimensions``).

        Raises ImportError with an install hint if ``umap-learn`` is missing;
        ``hdbscan`` is only needed once :meth:`fit` runs.
        """
        reducer = None
        if reduce_dimensions:
            reducer = build_umap_reducer(
                n_components=n_components,
                n_neighbors=n_neighbors,
                random_state=random_state,
            )
        return cls(
            HDBSCANClusterer(min_cluster_size=min_cluster_size, min_samples=min_samples),
            reducer=reducer,
            min_cluster_size=min_cluster_size,
            min_samples=min_samples,
            reduce_dimensions=reduce_dimensions,
            n_components=n_components,
            n_neighbors=n_neighbors,
            random_state=random_state,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Internal helper – unified logging
    # ------------------------------------------------------------------
    def _log(self, message: str, verbose: bool = True) -> None:
        """
        Log a message if `verbose` is True.

        - If `self.logger` is provided, it will be called with the message.
        - Otherwise, falls back to `print(message)`.
        """
        if not verbose:
            return
        if self.logger is not None:
            self.logger(message)
        else:
            print(message)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def config(self) -> Dict[str, Any]:
        """Run configuration (the persisted keys plus informational ones)."""
        return {
            "min_cluster_size": self.min_cluster_size,
            "min_samples": self.min_samples,
            "reduce_dimensions": self.reduce_dimensions,
            "n_components": self.n_components,
            "labeling_method": self.labeling_method.value,
            "n_neighbors": self.n_neighbors,
            "top_n_terms": self.top_n_terms,
            "n_label_documents": self.n_label_documents,
            "random_state": self.random_state,
            "clusterer": type(self.clusterer).__name__,
            "reducer": type(self.reducer).__name__ if self.reducer is not None else None,
        }

    def fit(
        self,
        embeddings: Any,
        documents: Sequence[str],
        metadata: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> List[Topic]:
        """
        Discover topics in one in-memory batch.

        Parameters
        ----------
        embeddings:
            Sequence (or 2-D array) of document vectors, aligned with
            ``documents``.
        documents:
            Document texts.
        metadata:
            Optional per-document dicts, aligned with ``documents``.

        Returns
        -------
        list of Topic
            Topics ordered by ascending id. Outliers belong to no topic; see
            :meth:`outliers`.
        """
        n_docs = len(documents)
        if len(embeddings) != n_docs:
            raise ValueError(
                "Embeddings and documents must have the same length "
                f"(got {len(embeddings)} embeddings for {n_docs} documents)."
            )
        if metadata is not None and len(metadata) != n_docs:
            raise ValueError(
                "metadata must have the same length as documents "
                f"(got {len(metadata)} entries for {n_docs} documents)."
            )

        self._documents = list(documents)
        self._metadata = list(metadata) if metadata is not None else [{} for _ in range(n_docs)]
        self.topics = []
        self.embedding_report = None
        self._cluster_ids = None
        self._reduced = False
        self._clusterer_fitted = False

        self._log(f"[TopicModeler] Starting topic extraction for {n_docs} documents...", self.verbose)

        if n_docs == 0:
            self._cluster_ids = np.zeros(0, dtype=int)
            self._log("[TopicModeler] No documents given; nothing to cluster.", self.verbose)
            return self.topics

        # --------------------------------------------------------------
        # 1. Optional validation + dimensionality reduction
        # --------------------------------------------------------------
        working, valid_indices = self._prepare_embeddings(embeddings)

        # --------------------------------------------------------------
        # 2. Clustering
        # --------------------------------------------------------------
        self._log(
            f"[TopicModeler] Step 2/5 - clustering {len(valid_indices)} documents "
            f"({working.shape[1]} dims) with {type(self.clusterer).__name__}...",
            self.verbose,
        )
        labels = self._cluster(working[valid_indices])

        cluster_ids = np.full(n_docs, OUTLIER, dtype=int)
        cluster_ids[valid_indices] = labels
        self._cluster_ids = cluster_ids

        # --------------------------------------------------------------
        # 3. Build Topic objects
        # --------------------------------------------------------------
        self._log("[TopicModeler] Step 3/5 - building topics...", self.verbose)
        self.topics = self._build_topics(working, cluster_ids)

        # --------------------------------------------------------------
        # 4. Distinctive terms
        # --------------------------------------------------------------
        self._log("[TopicModeler] Step 4/5 - extracting distinctive terms...", self.verbose)
        self._extract_topic_terms()

        # --------------------------------------------------------------
        # 5. Labels
        # --------------------------------------------------------------
        self._log(
            f"[TopicModeler] Step 5/5 - labeling topics ({self.labeling_method.value})...",
            self.verbose,
        )
        self._label_topics()

        self._log(
            f"[TopicModeler] Found {len(self.topics)} topics "
            f"(plus {len(self.outliers())} outliers).",
            self.verbose,
        )
        return self.topics

    def transform(self, embeddings: Any) -> List[int]:
        """
        Assign new embeddings to existing topics.

        Uses the clusterer's ``approximate_predict`` when this instance fitted
        it; otherwise each point goes to the topic with the nearest centroid
        (Euclidean, ties to the lowest topic id). If the last fit reduced
        dimensions and the reducer supports ``transform``, new points are
        projected first.
        """
        if not self.topics:
            raise RuntimeError("Must call fit before transform (no topics available).")

        X = np.asarray(embeddings, dtype=float)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.shape[0] == 0:
            return []

        if self._reduced and callable(getattr(self.reducer, "transform", None)):
            X = np.asarray(self.reducer.transform(X), dtype=float)

        approximate = getattr(self.clusterer, "approximate_predict", None)
        if self._clusterer_fitted and callable(approximate):
            return [int(label) for label in np.asarray(approximate(X)).ravel()]

        return self._assign_to_nearest_topic(X)

    def get_topic(self, topic_id: int) -> Optional[Topic]:
        for topic in self.topics:
            if topic.id == topic_id:
                return topic
        return None

    def outliers(self) -> List[int]:
        """Indices of documents not assigned to any topic in the last fit."""
        if self._cluster_ids is None:
            return []
        return [int(i) for i in np.flatnonzero(self._cluster_ids == OUTLIER)]

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def topic_info(self) -> pd.DataFrame:
        """One row per topic, ordered by topic id."""
        rows = []
        for topic in self.topics:
            rows.append(
                {
                    "topic_id": topic.id,
                    "label": topic.label,
                    "size": topic.size,
                    "coherence": topic.coherence,
                    "distinctiveness": topic.distinctiveness(self.topics),
                    "top_terms": topic.terms[:10],
                    "description": topic.description,
                    "confidence": topic.confidence,
                    "method": topic.label_method,
                }
            )
        return pd.DataFrame(rows, columns=TOPIC_INFO_COLUMNS)

    def document_info(self) -> pd.DataFrame:
        """One row per document of the last fit with its cluster assignment."""
        if self._cluster_ids is None:
            return pd.DataFrame(columns=DOCUMENT_INFO_COLUMNS)

        labels = {t.id: t.label for t in self.topics}
        df = pd.DataFrame(
            {
                "document_index": np.arange(len(self._documents)),
                "cluster_id": self._cluster_ids,
                "document": self._documents,
            }
        )
        df["topic_label"] = df["cluster_id"].map(labels)
        df["is_outlier"] = df["cluster_id"] == OUTLIER
        return df[DOCUMENT_INFO_COLUMNS]

    def evaluate(self) -> Dict[str, float]:
        """Aggregate quality metrics for the current topics."""
        n_documents = len(self._documents) or sum(t.size for t in self.topics)
        if not self.topics:
            return {
                "n_topics": 0,
                "n_outliers": len(self.outliers()),
                "coverage": 0.0,
                "diversity": 0.0,
                "mean_coherence": 0.0,
                "mean_distinctiveness": 0.0,
                "mean_silhouette": 0.0,
            }

        coherences = [t.coherence for t in self.topics]
        distinct = [t.distinctiveness(self.topics) for t in self.topics]
        silhouettes = [
            metrics.compute_silhouette_score(t, self.topics) for t in self.topics if t.embeddings
        ]
        return {
            "n_topics": len(self.topics),
            "n_outliers": len(self.outliers()),
            "coverage": metrics.compute_coverage(self.topics, n_documents),
            "diversity": metrics.compute_diversity(self.topics),
            "mean_coherence": float(np.mean(coherences)),
            "mean_distinctiveness": float(np.mean(distinct)),
            "mean_silhouette": float(np.mean(silhouettes)) if silhouettes else 0.0,
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Union[str, Path]) -> None:
        """
        Write topic metadata and the run configuration as JSON.

        Documents and embeddings are not stored.
        """
        payload = SavedTopicSet(
            topics=[SavedTopic(**topic.to_dict()) for topic in self.topics],
            config=SavedConfig(
                min_cluster_size=self.min_cluster_size,
                min_samples=self.min_samples,
                reduce_dimensions=self.reduce_dimensions,
                n_components=self.n_components,
                labeling_method=self.labeling_method.value,
            ),
        )
        Path(path).write_text(payload.model_dump_json(indent=2), encoding="utf-8")

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        clusterer: Optional[Any] = None,
        *,
        reducer: Optional[Any] = None,
        llm_client: Optional[Any] = None,
        logger: Optional[Callable[[str], None]] = None,
        verbose: bool = False,
    ) -> "TopicModeler":
        """
        Restore a modeler saved with :meth:`save`.

        Loaded topics have ids, labels, terms, document indices, centroids and
        coherence, but no documents or embeddings. :meth:`transform` works by
        nearest centroid. If ``clusterer`` is None an (unfitted)
        :class:`HDBSCANClusterer` is built from the saved settings so the
        modeler can be refitted.
        """
        data = SavedTopicSet.model_validate_json(Path(path).read_text(encoding="utf-8"))
        cfg = data.config
        if clusterer is None:
            clusterer = HDBSCANClusterer(
                min_cluster_size=cfg.min_cluster_size, min_samples=cfg.min_samples
            )

        modeler = cls(
            clusterer,
            reducer=reducer,
            min_cluster_size=cfg.min_cluster_size,
            min_samples=cfg.min_samples,
            reduce_dimensions=cfg.reduce_dimensions,
            n_components=cfg.n_components,
            labeling_method=cfg.labeling_method,
            llm_client=llm_client,
            logger=logger,
            verbose=verbose,
        )
        modeler.topics = sorted(
            (Topic.from_dict(t.model_dump()) for t in data.topics),
            key=lambda t: t.id,
        )
        return modeler

    # ------------------------------------------------------------------
    # Internal helpers – embeddings and reduction
    # ------------------------------------------------------------------

    def _prepare_embeddings(self, embeddings: Any) -> Tuple[np.ndarray, np.ndarray]:
        """
        Return the clustering matrix (one row per document) and the indices of
        rows that take part in clustering.
        """
        n_docs = len(embeddings)
        width = self._embedding_width(embeddings)

        if self.reduce_dimensions and self.reducer is not None and width > self.n_components:
            self._log(
                f"[TopicModeler] Step 1/5 - reducing dimensions from {width} "
                f"to {self.n_components}...",
                self.verbose,
            )
            report = self._validate_embeddings(embeddings, width)
            self.embedding_report = report

            valid = np.asarray(report.valid_indices, dtype=int)
            matrix = np.asarray([embeddings[i] for i in report.valid_indices], dtype=float)
            reduced = self._reduce(matrix)

            working = np.full((n_docs, reduced.shape[1]), np.nan)
            working[valid] = reduced
            self._reduced = True
            return working, valid

        self._log("[TopicModeler] Step 1/5 - using embeddings without reduction.", self.verbose)
        try:
            working = np.asarray(embeddings, dtype=float)
        except (TypeError, ValueError) as e:
            raise ValueError(
                "Embeddings must form a 2-D numeric matrix "
                "(equal-length numeric vectors)."
            ) from e
        if working.ndim != 2:
            raise ValueError(
                f"Embeddings must form a 2-D numeric matrix, got shape {working.shape}."
            )
        return working, np.arange(n_docs)

    @staticmethod
    def _embedding_width(embeddings: Any) -> int:
        """Most common row length; a malformed first row does not decide it."""
        lengths = Counter(
            len(row) for row in embeddings if hasattr(row, "__len__") and not isinstance(row, str)
        )
        if not lengths:
            return 0
        return lengths.most_common(1)[0][0]

    def _validate_embeddings(self, embeddings: Any, width: int) -> EmbeddingQualityReport:
        """
        Keep only finite numeric vectors of the expected width.

        Raises ValueError if nothing usable (or fewer than
        ``MIN_VIABLE_SAMPLES`` vectors) remains.
        """
        report = EmbeddingQualityReport(n_total=len(embeddings))

        for idx, row in enumerate(embeddings):
            vec = _numeric_vector(row)
            if vec is None or vec.shape[0] != width:
                report.invalid_count += 1
                report.discarded_indices.append(idx)
            elif np.isnan(vec).any():
                report.nan_count += 1
                report.discarded_indices.append(idx)
            elif np.isinf(vec).any():
                report.inf_count += 1
                report.discarded_indices.append(idx)
            else:
                report.valid_indices.append(idx)

        if report.n_discarded:
            lines = ["[TopicModeler] Data quality issues detected:"]
            if report.invalid_count:
                lines.append(f"  - invalid embeddings: {report.invalid_count}")
            if report.nan_count:
                lines.append(f"  - embeddings with NaN: {report.nan_count}")
            if report.inf_count:
                lines.append(f"  - embeddings with Infinity: {report.inf_count}")
            lines.append(f"  - total removed: {report.n_discarded} (reported as outliers)")
            lines.append(f"  - remaining valid: {report.n_valid}")
            self._log("\n".join(lines))

        if report.n_valid == 0:
            raise ValueError(
                "No valid embeddings found after validation.\n\n"
                "All embeddings contain invalid values (NaN, Infinity, or non-numeric).\n"
                "This suggests a problem with the embedding model or indexing process.\n\n"
                "Please try:\n"
                "  1. Re-generating the embeddings for your documents\n"
                "  2. Using a different embedding model\n"
                "  3. Checking your document content for unusual characters"
            )
        if report.n_valid < MIN_VIABLE_SAMPLES:
            raise ValueError(
                f"Too few valid embeddings ({report.n_valid}) for dimensionality reduction.\n\n"
                f"At least {MIN_VIABLE_SAMPLES} samples are required. Add more documents, "
                "fix the invalid embeddings, or pass reduce_dimensions=False."
            )
        return report

    def _reduce(self, matrix: np.ndarray) -> np.ndarray:
        n_samples, n_features = matrix.shape
        n_components = min(self.n_components, n_samples - 1, MAX_REDUCED_COMPONENTS)
        n_neighbors = min(self.n_neighbors, n_samples - 1)

        if n_components != self.n_components or n_neighbors != self.n_neighbors:
            self._log(
                f"[TopicModeler] Adjusted reducer parameters for {n_samples} samples: "
                f"n_components {self.n_components}->{n_components}, "
                f"n_neighbors {self.n_neighbors}->{n_neighbors}",
                self.verbose,
            )
        self._configure_reducer(n_components=n_components, n_neighbors=n_neighbors)

        try:
            reduced = np.asarray(self.reducer.fit_transform(matrix), dtype=float)
        except Exception as e:
            raise RuntimeError(
                self._collaborator_failure(
                    "Dimensionality reduction",
                    e,
                    n_samples=n_samples,
                    n_features=n_features,
                    n_components=n_components,
                    n_neighbors=n_neighbors,
                )
            ) from e

        if reduced.ndim != 2 or reduced.shape[0] != n_samples:
            raise RuntimeError(
                f"Dimensionality reduction returned shape {reduced.shape} "
                f"for {n_samples} input rows."
            )
        return reduced

    def _configure_reducer(self, **params: int) -> None:
        """Pass parameters through scikit-learn style ``set_params`` when supported."""
        get_params = getattr(self.reducer, "get_params", None)
        set_params = getattr(self.reducer, "set_params", None)
        if not callable(get_params) or not callable(set_params):
            return
        accepted = get_params()
        supported = {k: v for k, v in params.items() if k in accepted}
        if supported:
            set_params(**supported)

    # ------------------------------------------------------------------
    # Internal helpers – clustering and topic construction
    # ------------------------------------------------------------------

    def _cluster(self, matrix: np.ndarray) -> np.ndarray:
        n_samples = matrix.shape[0]
        try:
            labels = self.clusterer.fit_predict(matrix)
        except Exception as e:
            raise RuntimeError(
                self._collaborator_failure(
                    "Clustering",
                    e,
                    n_samples=n_samples,
                    n_features=matrix.shape[1] if matrix.ndim == 2 else 0,
                )
            ) from e

        labels = np.asarray(labels).astype(int).ravel()
        if labels.shape[0] != n_samples:
            raise RuntimeError(
                f"Clusterer returned {labels.shape[0]} labels for {n_samples} embeddings."
            )
        self._clusterer_fitted = True
        # Any negative label is the outlier sentinel.
        labels[labels < 0] = OUTLIER
        return labels

    def _build_topics(self, working: np.ndarray, cluster_ids: np.ndarray) -> List[Topic]:
        groups: Dict[int, List[int]] = {}
        for doc_idx, cid in enumerate(cluster_ids.tolist()):
            if cid == OUTLIER:
                continue
            groups.setdefault(cid, []).append(doc_idx)

        return [
            Topic(
                id=cid,
                document_indices=indices,
                documents=[self._documents[i] for i in indices],
                embeddings=working[indices],
                metadata=[self._metadata[i] for i in indices],
            )
            for cid, indices in sorted(groups.items())
        ]

    def _extract_topic_terms(self) -> None:
        for topic in self.topics:
            terms = self.term_extractor.extract_distinctive_terms(
                topic_docs=topic.documents,
                all_docs=self._documents,
                top_n=self.top_n_terms,
            )
            topic.set_terms(terms)

    def _label_topics(self) -> None:
        for topic in self.topics:
            result = self.labeler.generate_label(
                terms=topic.terms,
                documents=topic.documents[: self.n_label_documents],
                topic=topic,
            )
            topic.apply_label(result)

    def _assign_to_nearest_topic(self, X: np.ndarray) -> List[int]:
        candidates = [t for t in self.topics if len(t.centroid) == X.shape[1]]
        if not candidates:
            raise RuntimeError(
                "No topic centroid matches the dimensionality of the new "
                f"embeddings ({X.shape[1]})."
            )
        centroids = np.asarray([t.centroid for t in candidates], dtype=float)
        distances = pairwise_distances(X, centroids, metric="euclidean")
        # argmin returns the first minimum; topics are sorted by id
        nearest = np.argmin(distances, axis=1)
        return [candidates[i].id for i in nearest]

    def _collaborator_failure(
        self,
        stage: str,
        error: Exception,
        *,
        n_samples: int,
        n_features: int,
        n_components: Optional[int] = None,
        n_neighbors: Optional[int] = None,
    ) -> str:
        return (
            f"{stage} failed: {type(error).__name__}: {error}\n\n"
            "This typically happens when:\n"
            "  - the embedding data contains invalid values (NaN, Infinity)\n"
            "  - the parameters are incompatible with your data\n"
            "  - there are too few samples for the requested parameters\n\n"
            "Suggested solutions:\n"
            "  1. Try more conservative parameters, e.g. n_components=10, "
            "n_neighbors=5, min_cluster_size=2, min_samples=1\n"
            "  2. Re-generate the embeddings and check them for invalid values\n"
            "  3. Add more documents\n\n"
            "Current parameters:\n"
            f"  - n_components: {n_components if n_components is not None else self.n_components}\n"
            f"  - n_neighbors: {n_neighbors if n_neighbors is not None else self.n_neighbors}\n"
            f"  - min_cluster_size: {self.min_cluster_size}\n"
            f"  - min_samples: {self.min_samples}\n"
            f"  - embeddings: {n_samples} samples\n"
            f"  - dimensions: {n_features}"
        )


def _numeric_vector(row: Any) -> Optional[np.ndarray]:
    """Return ``row`` as a 1-D float array, or None if it is not numeric."""
    if isinstance(row, np.ndarray):
        if row.ndim != 1 or not np.issubdtype(row.dtype, np.number):
            return None
        return row.astype(float)

    try:
        values = list(row)
    except TypeError:
        return None
    if not all(isinstance(v, numbers.Real) and not isinstance(v, bool) for v in values):
        return None
    return np.asarray(values, dtype=float)
