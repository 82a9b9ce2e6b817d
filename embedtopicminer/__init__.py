"""
EmbedTopicMiner

Topic discovery over pre-computed document embeddings.

High-level API
--------------
- TopicModeler      → reduce + cluster embeddings into labeled topics
- Topic             → one discovered topic (documents, terms, label, metrics)
- TermExtractor     → c-TF-IDF distinctive terms (plus TF-IDF / frequency modes)
- TopicLabeler      → term-based, LLM-based or hybrid topic labels
- LLMAdapter        → wrap callables / LangChain models / Agents SDK agents
- Backends:
    * HDBSCANClusterer, AutoKMeansClusterer
    * build_umap_reducer, build_pca_reducer
- Metrics:
    * compute_coherence, compute_distinctiveness, compute_diversity,
      compute_coverage, compute_silhouette_score
"""

from importlib.metadata import PackageNotFoundError, version


# Core APIs
from .topic import Topic
from .topic_modeler import (
    TopicModeler,
    EmbeddingQualityReport,
    SavedTopicSet,
    SavedTopic,
    SavedConfig,
)
from .term_extractor import TermExtractor, DEFAULT_STOP_WORDS
from .topic_labeler import TopicLabeler, LabelResult
from .labeling_strategies import (
    LabelingMethod,
    LabelingStrategy,
    TermBasedStrategy,
    LLMBasedStrategy,
    HybridStrategy,
    TopicLabelModel,
    create_strategy,
)
from .llm_adapter import GenerativeClient, LLMAdapter

# Collaborator backends
from .backends import (
    HDBSCANClusterer,
    AutoKMeansClusterer,
    build_umap_reducer,
    build_pca_reducer,
)

# Metrics
from .metrics import (
    compute_coherence,
    compute_distinctiveness,
    compute_diversity,
    compute_coverage,
    compute_silhouette_score,
)


# ---------------------------------------------------------------------
# Runtime version (single source of truth = pyproject.toml)
# ---------------------------------------------------------------------
try:
    __version__ = version("embedtopicminer")
except PackageNotFoundError:
    # Fallback when running directly from a clone without installation
    __version__ = "0.0.0"

__all__ = [
    "Topic",
    "TopicModeler",
    "EmbeddingQualityReport",
    "SavedTopicSet",
    "SavedTopic",
    "SavedConfig",
    "TermExtractor",
    "DEFAULT_STOP_WORDS",
    "TopicLabeler",
    "LabelResult",
    "LabelingMethod",
    "LabelingStrategy",
    "TermBasedStrategy",
    "LLMBasedStrategy",
    "HybridStrategy",
    "TopicLabelModel",
    "create_strategy",
    "GenerativeClient",
    "LLMAdapter",
    "HDBSCANClusterer",
    "AutoKMeansClusterer",
    "build_umap_reducer",
    "build_pca_reducer",
    "compute_coherence",
    "compute_distinctiveness",
    "compute_diversity",
    "compute_coverage",
    "compute_silhouette_score",
    "__version__",
]
