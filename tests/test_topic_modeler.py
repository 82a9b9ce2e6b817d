import json

import numpy as np
import pytest
from pydantic import ValidationError

from conftest import (
    FailingClusterer,
    PredictingStubClusterer,
    StubClusterer,
    StubLLM,
    StubReducer,
)
from embedtopicminer.backends import HDBSCANClusterer
from embedtopicminer.topic_modeler import TopicModeler


def _fit(labels, embeddings, documents, **kwargs):
    kwargs.setdefault("reduce_dimensions", False)
    kwargs.setdefault("labeling_method", "term_based")
    modeler = TopicModeler(StubClusterer(labels), **kwargs)
    return modeler, modeler.fit(embeddings, documents)


def _wide_embeddings(n, dim=8, seed=0):
    rng = np.random.default_rng(seed)
    return rng.normal(size=(n, dim)).tolist()


# ---------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------


def test_clusterer_is_required():
    with pytest.raises(ValueError, match="fit_predict"):
        TopicModeler(None)
    with pytest.raises(ValueError):
        TopicModeler(object())


def test_reducer_must_support_fit_transform():
    with pytest.raises(ValueError):
        TopicModeler(StubClusterer([]), reducer=object())


def test_missing_reducer_is_logged_once_at_construction():
    messages = []
    TopicModeler(StubClusterer([]), reduce_dimensions=True, logger=messages.append, verbose=True)
    assert len(messages) == 1
    assert "no reducer" in messages[0]


def test_config_defaults():
    config = TopicModeler(StubClusterer([])).config
    assert config["min_cluster_size"] == 5
    assert config["min_samples"] == 3
    assert config["reduce_dimensions"] is True
    assert config["n_components"] == 50
    assert config["labeling_method"] == "hybrid"
    assert config["clusterer"] == "StubClusterer"
    assert config["reducer"] is None


def test_from_defaults_builds_hdbscan_clusterer():
    modeler = TopicModeler.from_defaults(min_cluster_size=4, min_samples=2, reduce_dimensions=False)
    assert isinstance(modeler.clusterer, HDBSCANClusterer)
    assert modeler.clusterer.min_cluster_size == 4
    assert modeler.reducer is None


# ---------------------------------------------------------------------
# fit
# ---------------------------------------------------------------------


def test_two_separated_groups(two_group_embeddings, nine_documents, two_group_labels):
    modeler, topics = _fit(two_group_labels, two_group_embeddings, nine_documents)

    assert [t.id for t in topics] == [0, 1]
    assert [t.size for t in topics] == [5, 4]
    assert modeler.outliers() == []


def test_topic_members_align_with_inputs(two_group_embeddings, nine_documents, two_group_labels):
    _, topics = _fit(two_group_labels, two_group_embeddings, nine_documents)

    for topic in topics:
        assert topic.documents == [nine_documents[i] for i in topic.document_indices]
        assert np.allclose(topic.embeddings, two_group_embeddings[topic.document_indices])


def test_sizes_plus_outliers_cover_all_documents(two_group_embeddings, nine_documents):
    labels = [2, -1, 2, 0, 0, -1, 1, 1, 1]
    modeler, topics = _fit(labels, two_group_embeddings, nine_documents)

    assert [t.id for t in topics] == [0, 1, 2]
    assert modeler.outliers() == [1, 5]
    assert sum(t.size for t in topics) + len(modeler.outliers()) == len(nine_documents)


def test_terms_and_labels_are_attached(two_group_embeddings, nine_documents, two_group_labels):
    _, topics = _fit(two_group_labels, two_group_embeddings, nine_documents)

    ml, ruby = topics
    assert "ruby" in ruby.terms[:3]
    assert "ruby" not in ml.terms
    assert ml.label_method == "term_based"
    assert ruby.label.startswith("Ruby")


def test_hybrid_without_client_marks_fallback(two_group_embeddings, nine_documents, two_group_labels):
    _, topics = _fit(
        two_group_labels, two_group_embeddings, nine_documents, labeling_method="hybrid"
    )
    assert {t.label_method for t in topics} == {"hybrid_fallback"}


def test_llm_labels_use_first_documents(two_group_embeddings, nine_documents, two_group_labels):
    llm = StubLLM('{"label": "Generated", "confidence": 0.9}')
    _, topics = _fit(
        two_group_labels,
        two_group_embeddings,
        nine_documents,
        labeling_method="llm_based",
        llm_client=llm,
        n_label_documents=2,
    )
    assert [t.label for t in topics] == ["Generated", "Generated"]
    assert topics[0].confidence == 0.9
    first_prompt = llm.calls[0]["prompt"]
    assert "Document 2:" in first_prompt
    assert "Document 3:" not in first_prompt


def test_metadata_is_grouped(two_group_embeddings, nine_documents, two_group_labels):
    metadata = [{"source": f"doc{i}"} for i in range(9)]
    modeler = TopicModeler(StubClusterer(two_group_labels), reduce_dimensions=False)
    topics = modeler.fit(two_group_embeddings, nine_documents, metadata=metadata)
    assert topics[1].metadata == [{"source": f"doc{i}"} for i in range(5, 9)]


def test_length_mismatch_is_rejected(two_group_embeddings, nine_documents, two_group_labels):
    modeler = TopicModeler(StubClusterer(two_group_labels), reduce_dimensions=False)
    with pytest.raises(ValueError, match="same length"):
        modeler.fit(two_group_embeddings[:5], nine_documents)
    with pytest.raises(ValueError):
        modeler.fit(two_group_embeddings, nine_documents, metadata=[{}])


def test_empty_input_gives_no_topics():
    modeler = TopicModeler(StubClusterer([]), reduce_dimensions=False)
    assert modeler.fit([], []) == []
    assert modeler.outliers() == []


def test_clusterer_failure_is_wrapped(two_group_embeddings, nine_documents):
    modeler = TopicModeler(FailingClusterer(), reduce_dimensions=False)
    with pytest.raises(RuntimeError, match="Clustering failed") as excinfo:
        modeler.fit(two_group_embeddings, nine_documents)
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert "min_cluster_size" in str(excinfo.value)


def test_clusterer_returning_wrong_label_count(two_group_embeddings, nine_documents):
    modeler = TopicModeler(StubClusterer([0, 1]), reduce_dimensions=False)
    with pytest.raises(RuntimeError, match="labels"):
        modeler.fit(two_group_embeddings, nine_documents)


# ---------------------------------------------------------------------
# Dimensionality reduction
# ---------------------------------------------------------------------


def test_reduction_adjusts_parameters_for_small_samples():
    n = 12
    reducer = StubReducer(n_components=50, n_neighbors=15)
    clusterer = StubClusterer([0] * 6 + [1] * 6)
    modeler = TopicModeler(clusterer, reducer=reducer, n_components=3, n_neighbors=15)

    topics = modeler.fit(_wide_embeddings(n), [f"document number {i}" for i in range(n)])

    assert reducer.set_calls == [{"n_components": 3, "n_neighbors": 11}]
    assert reducer.fit_shape == (12, 8)
    assert clusterer.seen[0].shape == (12, 3)
    assert len(topics[0].embeddings[0]) == 3
    assert modeler.embedding_report.n_valid == 12


def test_reduction_caps_components_at_sample_count():
    n = 12
    reducer = StubReducer()
    modeler = TopicModeler(StubClusterer([0] * n), reducer=reducer, n_components=5)
    modeler.fit(_wide_embeddings(n, dim=60), [f"doc {i}" for i in range(n)])
    assert reducer.n_components == 5

    reducer = StubReducer()
    modeler = TopicModeler(StubClusterer([0] * n), reducer=reducer, n_components=40)
    modeler.fit(_wide_embeddings(n, dim=60), [f"doc {i}" for i in range(n)])
    assert reducer.n_components == n - 1


def test_narrow_embeddings_skip_reduction(two_group_embeddings, nine_documents, two_group_labels):
    reducer = StubReducer()
    modeler = TopicModeler(StubClusterer(two_group_labels), reducer=reducer, n_components=5)
    modeler.fit(two_group_embeddings, nine_documents)
    assert reducer.fit_shape is None
    assert modeler.embedding_report is None


def test_invalid_embeddings_become_outliers():
    embeddings = _wide_embeddings(12)
    embeddings.insert(2, [float("nan")] * 8)
    embeddings.insert(7, [float("inf")] + [0.0] * 7)
    embeddings.append(["x"] * 8)
    documents = [f"document {i}" for i in range(len(embeddings))]

    messages = []
    clusterer = StubClusterer([0] * 6 + [1] * 6)
    modeler = TopicModeler(
        clusterer, reducer=StubReducer(), n_components=3, logger=messages.append
    )
    topics = modeler.fit(embeddings, documents)

    report = modeler.embedding_report
    assert (report.invalid_count, report.nan_count, report.inf_count) == (1, 1, 1)
    assert report.discarded_indices == [2, 7, 14]
    assert clusterer.seen[0].shape == (12, 3)
    assert modeler.outliers() == [2, 7, 14]
    assert sum(t.size for t in topics) == 12
    assert any("Data quality issues" in m for m in messages)


def test_malformed_first_embedding_does_not_set_expected_width():
    embeddings = _wide_embeddings(12)
    embeddings[0] = embeddings[0][:7]
    documents = [f"document {i}" for i in range(12)]

    clusterer = StubClusterer([0] * 5 + [1] * 6)
    modeler = TopicModeler(clusterer, reducer=StubReducer(), n_components=2)
    topics = modeler.fit(embeddings, documents)

    assert modeler.embedding_report.invalid_count == 1
    assert modeler.embedding_report.n_valid == 11
    assert clusterer.seen[0].shape == (11, 2)
    assert modeler.outliers() == [0]
    assert sum(t.size for t in topics) == 11


def test_all_invalid_embeddings_is_fatal():
    embeddings = [[float("nan")] * 8 for _ in range(12)]
    modeler = TopicModeler(StubClusterer([]), reducer=StubReducer(), n_components=3)
    with pytest.raises(ValueError, match="No valid embeddings"):
        modeler.fit(embeddings, [f"doc {i}" for i in range(12)])


def test_too_few_valid_embeddings_is_fatal():
    embeddings = _wide_embeddings(9) + [[float("nan")] * 8] * 3
    modeler = TopicModeler(StubClusterer([]), reducer=StubReducer(), n_components=3)
    with pytest.raises(ValueError, match="Too few valid embeddings"):
        modeler.fit(embeddings, [f"doc {i}" for i in range(12)])


def test_reducer_failure_is_wrapped():
    modeler = TopicModeler(StubClusterer([]), reducer=StubReducer(fail=True), n_components=3)
    with pytest.raises(RuntimeError, match="Dimensionality reduction failed") as excinfo:
        modeler.fit(_wide_embeddings(12), [f"doc {i}" for i in range(12)])
    assert "n_neighbors" in str(excinfo.value)
    assert excinfo.value.__cause__ is not None


# ---------------------------------------------------------------------
# transform
# ---------------------------------------------------------------------


def test_transform_before_fit_raises():
    with pytest.raises(RuntimeError):
        TopicModeler(StubClusterer([])).transform([[0.0, 0.0, 0.0]])


def test_transform_nearest_centroid(two_group_embeddings, nine_documents, two_group_labels):
    modeler, _ = _fit(two_group_labels, two_group_embeddings, nine_documents)
    assert modeler.transform([[0.2, 0.0, -0.1], [9.8, 10.1, 10.0]]) == [0, 1]
    assert modeler.transform([10.0, 10.0, 10.0]) == [1]


def test_transform_ties_go_to_lowest_topic_id():
    embeddings = [[1.0, 0.0], [1.0, 0.0], [-1.0, 0.0], [-1.0, 0.0]]
    documents = ["ruby gems", "ruby rails", "python pip", "python django"]
    modeler, topics = _fit([3, 3, 1, 1], embeddings, documents)

    assert [t.id for t in topics] == [1, 3]
    assert modeler.transform([[0.0, 5.0]]) == [1]


def test_transform_uses_approximate_predict_after_fit(
    two_group_embeddings, nine_documents, two_group_labels
):
    clusterer = PredictingStubClusterer(two_group_labels, predicted=[1, -1])
    modeler = TopicModeler(clusterer, reduce_dimensions=False)
    modeler.fit(two_group_embeddings, nine_documents)
    assert modeler.transform([[0.0, 0.0, 0.0], [50.0, 50.0, 50.0]]) == [1, -1]
    assert clusterer.predict_calls == 1


def test_transform_projects_through_reducer():
    n = 12
    clusterer = StubClusterer([0] * 6 + [1] * 6)
    modeler = TopicModeler(clusterer, reducer=StubReducer(), n_components=2)
    modeler.fit(_wide_embeddings(n), [f"doc {i}" for i in range(n)])
    # 8-dim inputs are projected to the 2-dim topic space before matching
    assert modeler.transform(_wide_embeddings(1, seed=3))[0] in (0, 1)


# ---------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------


def test_topic_and_document_info(two_group_embeddings, nine_documents):
    labels = [0, 0, 0, -1, 0, 1, 1, 1, 1]
    modeler, topics = _fit(labels, two_group_embeddings, nine_documents)

    info = modeler.topic_info()
    assert list(info["topic_id"]) == [0, 1]
    assert list(info["size"]) == [4, 4]
    assert list(info["label"]) == [t.label for t in topics]

    docs = modeler.document_info()
    assert len(docs) == 9
    assert list(docs.loc[docs["is_outlier"], "document_index"]) == [3]
    assert docs.loc[5, "topic_label"] == topics[1].label


def test_reports_before_fit_are_empty():
    modeler = TopicModeler(StubClusterer([]))
    assert modeler.topic_info().empty
    assert modeler.document_info().empty
    assert modeler.evaluate()["n_topics"] == 0


def test_evaluate(two_group_embeddings, nine_documents):
    labels = [0, 0, 0, -1, 0, 1, 1, 1, -1]
    modeler, _ = _fit(labels, two_group_embeddings, nine_documents)
    scores = modeler.evaluate()

    assert scores["n_topics"] == 2
    assert scores["n_outliers"] == 2
    assert scores["coverage"] == pytest.approx(7 / 9)
    assert scores["mean_silhouette"] > 0.9
    assert 0.0 <= scores["mean_coherence"] <= 1.0
    assert 0.0 <= scores["diversity"] <= 1.0


def test_get_topic(two_group_embeddings, nine_documents, two_group_labels):
    modeler, topics = _fit(two_group_labels, two_group_embeddings, nine_documents)
    assert modeler.get_topic(1) is topics[1]
    assert modeler.get_topic(42) is None


# ---------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------


def test_save_load_round_trip(tmp_path, two_group_embeddings, nine_documents, two_group_labels):
    modeler, topics = _fit(two_group_labels, two_group_embeddings, nine_documents)
    path = tmp_path / "topics.json"
    modeler.save(path)

    raw = json.loads(path.read_text())
    assert set(raw) == {"topics", "config"}
    assert raw["config"]["labeling_method"] == "term_based"

    clusterer = PredictingStubClusterer([])
    loaded = TopicModeler.load(path, clusterer)

    assert loaded.config["reduce_dimensions"] is False
    for original, restored in zip(topics, loaded.topics):
        assert restored.id == original.id
        assert restored.label == original.label
        assert restored.terms == original.terms
        assert restored.size == original.size
        assert restored.coherence == original.coherence
        assert restored.documents == []
        assert restored.embeddings == []

    # nearest centroid, the unfitted clusterer is not asked
    assert loaded.transform([[9.9, 10.0, 10.1]]) == [1]
    assert clusterer.predict_calls == 0


def test_load_without_clusterer_builds_hdbscan(tmp_path, two_group_embeddings, nine_documents, two_group_labels):
    modeler, _ = _fit(two_group_labels, two_group_embeddings, nine_documents, min_cluster_size=2)
    path = tmp_path / "topics.json"
    modeler.save(path)

    loaded = TopicModeler.load(path)
    assert isinstance(loaded.clusterer, HDBSCANClusterer)
    assert loaded.clusterer.min_cluster_size == 2


def test_load_rejects_incomplete_document(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"topics": [{"id": 0}], "config": {}}))
    with pytest.raises(ValidationError):
        TopicModeler.load(path, StubClusterer([]))
