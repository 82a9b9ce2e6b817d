from __future__ import annotations

from typing import Any, Dict, List, Optional

import numpy as np
import pytest


class StubClusterer:
    """Returns a fixed label vector and records what it was asked to cluster."""

    def __init__(self, labels):
        self.labels = list(labels)
        self.seen: List[np.ndarray] = []

    def fit_predict(self, X):
        X = np.asarray(X)
        self.seen.append(X)
        return np.asarray(self.labels)


class PredictingStubClusterer(StubClusterer):
    """StubClusterer that also supports approximate_predict."""

    def __init__(self, labels, predicted=None):
        super().__init__(labels)
        self.predicted = predicted
        self.predict_calls = 0

    def approximate_predict(self, X):
        self.predict_calls += 1
        return np.asarray(self.predicted if self.predicted is not None else [7] * len(X))


class FailingClusterer:
    def fit_predict(self, X):
        raise ValueError("k must be smaller than n_samples")


class StubReducer:
    """Keeps the first `n_components` columns; scikit-learn style params."""

    def __init__(self, n_components: int = 2, n_neighbors: int = 15, fail: bool = False):
        self.n_components = n_components
        self.n_neighbors = n_neighbors
        self.fail = fail
        self.fit_shape = None
        self.set_calls: List[Dict[str, Any]] = []

    def get_params(self, deep: bool = True) -> Dict[str, Any]:
        return {"n_components": self.n_components, "n_neighbors": self.n_neighbors}

    def set_params(self, **params):
        self.set_calls.append(params)
        for key, value in params.items():
            setattr(self, key, value)
        return self

    def fit_transform(self, X):
        if self.fail:
            raise RuntimeError("spectral initialisation failed")
        X = np.asarray(X, dtype=float)
        self.fit_shape = X.shape
        return X[:, : self.n_components]

    def transform(self, X):
        return np.asarray(X, dtype=float)[:, : self.n_components]


class StubLLM:
    """Generative client returning a canned response (or raising)."""

    def __init__(self, response: str = "", error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def generate(self, prompt, max_tokens=100, temperature=0.3, response_format=None):
        self.calls.append(
            {
                "prompt": prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "response_format": response_format,
            }
        )
        if self.error is not None:
            raise self.error
        return self.response


ML_DOCS = [
    "Machine learning models learn patterns from training data.",
    "Neural networks power modern machine learning systems.",
    "Deep learning uses neural networks with many layers.",
    "Training machine learning models requires labeled data.",
    "Gradient descent optimizes neural network weights during training.",
]

RUBY_DOCS = [
    "Ruby gems extend Ruby applications with reusable packages.",
    "Rails is a Ruby web framework following the MVC pattern.",
    "The Ruby community values developer happiness.",
    "Duck typing in Ruby allows flexible programming.",
]


@pytest.fixture
def nine_documents() -> List[str]:
    return ML_DOCS + RUBY_DOCS


@pytest.fixture
def two_group_embeddings() -> np.ndarray:
    """5 points around the origin and 4 points around (10, 10, 10)."""
    rng = np.random.default_rng(0)
    group_a = rng.normal(scale=0.1, size=(5, 3))
    group_b = 10.0 + rng.normal(scale=0.1, size=(4, 3))
    return np.vstack([group_a, group_b])


@pytest.fixture
def two_group_labels() -> List[int]:
    return [0, 0, 0, 0, 0, 1, 1, 1, 1]
