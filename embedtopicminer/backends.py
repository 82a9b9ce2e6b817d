"""
backends.py

Ready-made collaborators for TopicModeler.

TopicModeler only needs duck-typed objects:

- clusterer : ``fit_predict(X) -> labels`` (``-1`` = outlier), optionally
              ``approximate_predict(X) -> labels``
- reducer   : ``fit_transform(X) -> X_reduced`` (optionally ``transform`` and
              scikit-learn style ``get_params`` / ``set_params``)

This module wraps the usual libraries (hdbscan, scikit-learn, umap-learn) in
that shape. Each library is imported lazily so that only the backends you
actually build need to be installed.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np


# ---------------------------------------------------------------------
# Clusterers
# ---------------------------------------------------------------------


class HDBSCANClusterer:
    """
    Density-based clustering with HDBSCAN.

    Handles variable densities and marks noise points with ``-1``.
    ``prediction_data`` is always generated so new points can be assigned
    with :meth:`approximate_predict` without refitting.
    """

    def __init__(
        self,
        min_cluster_size: int = 5,
        min_samples: Optional[int] = 3,
        metric: str = "euclidean",
    ) -> None:
        self.min_cluster_size = min_cluster_size
        self.min_samples = min_samples
        self.metric = metric
        self._model: Any = None

    def fit_predict(self, X: Any) -> np.ndarray:
        hdbscan = _import_hdbscan()

        X = np.asarray(X, dtype=float)
        n_samples = X.shape[0]
        # HDBSCAN rejects parameters larger than the dataset.
        min_cluster_size = max(2, min(self.min_cluster_size, n_samples))
        min_samples = None if self.min_samples is None else max(1, min(self.min_samples, n_samples))

        self._model = hdbscan.HDBSCAN(
            min_cluster_size=min_cluster_size,
            min_samples=min_samples,
            metric=self.metric,
            prediction_data=True,
        )
        return self._model.fit_predict(X)

    def approximate_predict(self, X: Any) -> np.ndarray:
        if self._model is None:
            raise RuntimeError("HDBSCANClusterer must be fitted before approximate_predict.")
        hdbscan = _import_hdbscan()
        labels, _strengths = hdbscan.approximate_predict(self._model, np.asarray(X, dtype=float))
        return labels


class AutoKMeansClusterer:
    """
    Auto-K KMeans with Silhouette selection.

    Strategy
    --------
    - Restrict K to the range [2, max_clusters], but not exceeding n_samples - 1.
    - For each K, run KMeans and compute the Silhouette score.
    - Keep the K with the best score.
    - If no valid K exists (tiny inputs), everything goes into cluster 0.

    KMeans never produces outliers, so every document ends up in a topic.
    """

    def __init__(self, max_clusters: int = 15, random_state: int = 42) -> None:
        self.max_clusters = max_clusters
        self.random_state = random_state
        self.n_clusters_: Optional[int] = None
        self._model: Any = None

    def fit_predict(self, X: Any, sample_weight: Optional[np.ndarray] = None) -> np.ndarray:
        from sklearn.cluster import KMeans
        from sklearn.metrics import silhouette_score

        X = np.asarray(X, dtype=float)
        n_samples = X.shape[0]
        if n_samples == 0:
            raise ValueError("Cannot cluster an empty embedding matrix.")

        self._model = None
        # Silhouette needs 2 <= K <= n_samples - 1
        max_k = min(self.max_clusters, n_samples - 1)
        if max_k < 2:
            self.n_clusters_ = 1
            return np.zeros(n_samples, dtype=int)

        best_score = -1.0
        best_labels: Optional[np.ndarray] = None

        for k in range(2, max_k + 1):
            kmeans = KMeans(n_clusters=k, random_state=self.random_state, n_init=10)
            labels = kmeans.fit_predict(X, sample_weight=sample_weight)
            if len(set(labels.tolist())) < 2:
                continue

            score = silhouette_score(X, labels)
            if score > best_score:
                best_score = score
                best_labels = labels
                self._model = kmeans
                self.n_clusters_ = k

        if best_labels is None:
            self.n_clusters_ = 1
            return np.zeros(n_samples, dtype=int)

        return best_labels

    def approximate_predict(self, X: Any) -> np.ndarray:
        X = np.asarray(X, dtype=float)
        if self._model is None:
            return np.zeros(X.shape[0], dtype=int)
        return self._model.predict(X)


# ---------------------------------------------------------------------
# Dimensionality reducers
# ---------------------------------------------------------------------


def build_umap_reducer(
    n_components: int = 50,
    n_neighbors: int = 15,
    min_dist: float = 0.1,
    random_state: int = 42,
) -> Any:
    """
    Build a ``umap.UMAP`` estimator.

    TopicModeler lowers ``n_components`` / ``n_neighbors`` through
    ``set_params`` when the sample count is too small for them.
    """
    try:
        import umap  # type: ignore
    except ImportError as e:
        raise ImportError(
            "The 'umap-learn' package is required for UMAP reduction. "
            "Install with 'pip install umap-learn'."
        ) from e

    return umap.UMAP(
        n_components=n_components,
        n_neighbors=n_neighbors,
        min_dist=min_dist,
        random_state=random_state,
    )


def build_pca_reducer(n_components: int = 50, random_state: int = 42) -> Any:
    """
    Build a scikit-learn ``PCA`` estimator.

    Linear and deterministic; a lighter alternative to UMAP that also
    supports ``transform`` for new points.
    """
    from sklearn.decomposition import PCA

    return PCA(n_components=n_components, random_state=random_state)


def _import_hdbscan() -> Any:
    try:
        import hdbscan
    except ImportError as e:
        raise ImportError(
            "The 'hdbscan' package is required for HDBSCANClusterer. "
            "Install with 'pip install hdbscan'."
        ) from e
    return hdbscan
