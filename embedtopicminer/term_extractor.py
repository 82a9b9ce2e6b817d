"""
term_extractor.py

Distinctive-term extraction for EmbedTopicMiner.

Given the documents of one topic and the full corpus, TermExtractor scores
every token with class-based TF-IDF (c-TF-IDF):

    score(term) = tf(term in topic docs) * ln(N / df(term in corpus))

so that words which are frequent inside the topic but rare across the whole
collection float to the top. A few simpler extraction modes (standard TF-IDF,
raw frequency, mixed unigrams/bigrams) share the same tokenization rules.

Quick usage
-----------
    from embedtopicminer import TermExtractor

    extractor = TermExtractor()
    terms = extractor.extract_distinctive_terms(
        topic_docs=["ruby gems and rails", "rails apps in ruby"],
        all_docs=corpus,
        top_n=10,
    )
"""

from __future__ import annotations

import math
import re
from collections import Counter
from typing import FrozenSet, Iterable, List, Sequence, Tuple, Union


DEFAULT_STOP_WORDS: FrozenSet[str] = frozenset(
    """
    the be to of and a in that have i it for not on with he as you do at
    this but his by from they we say her she or an will my one all would
    there their what so up out if about who get which go me when make can
    like time no just him know take people into year your good some could
    them see other than then now look only come its over think also back
    after use two how our work first well way even new want because any
    these give day most us is was are been has had were said did may
    """.split()
)

_SPLIT_RE = re.compile(r"\W+")
_NUMERIC_RE = re.compile(r"^\d+$")


class TermExtractor:
    """
    Tokenizer + term scoring for topic descriptions.

    Tokenization rules
    ------------------
    - lowercase the text and split on non-word characters,
    - keep tokens whose length lies in ``[min_word_length, max_word_length]``,
    - drop purely numeric tokens,
    - drop stop words.

    All ranking methods return terms sorted by descending score; equal scores
    keep the order in which the terms were first seen.
    """

    def __init__(
        self,
        stop_words: Iterable[str] = DEFAULT_STOP_WORDS,
        min_word_length: int = 3,
        max_word_length: int = 20,
    ) -> None:
        """
        Parameters
        ----------
        stop_words:
            Words that are never returned as terms. Matched after lowercasing.
        min_word_length, max_word_length:
            Inclusive token length bounds.
        """
        if min_word_length > max_word_length:
            raise ValueError(
                "min_word_length must not exceed max_word_length "
                f"(got {min_word_length} > {max_word_length})."
            )
        self.stop_words: FrozenSet[str] = frozenset(w.lower() for w in stop_words)
        self.min_word_length = min_word_length
        self.max_word_length = max_word_length

    # ------------------------------------------------------------------
    # Tokenization
    # ------------------------------------------------------------------

    def tokenize(self, text: str) -> List[str]:
        """Split ``text`` into valid lowercase tokens, in reading order."""
        return [tok for tok in _SPLIT_RE.split(text.lower()) if self._valid_word(tok)]

    def _valid_word(self, word: str) -> bool:
        return (
            self.min_word_length <= len(word) <= self.max_word_length
            and word not in self.stop_words
            and not _NUMERIC_RE.match(word)
        )

    # ------------------------------------------------------------------
    # c-TF-IDF
    # ------------------------------------------------------------------

    def extract_distinctive_terms(
        self,
        topic_docs: Sequence[str],
        all_docs: Sequence[str],
        top_n: int = 20,
        with_scores: bool = False,
    ) -> Union[List[str], List[Tuple[str, float]]]:
        """
        Rank the terms of ``topic_docs`` by c-TF-IDF against ``all_docs``.

        Parameters
        ----------
        topic_docs:
            Documents belonging to the topic (the "class").
        all_docs:
            Background corpus used for document frequencies. Normally the full
            document list the topic was built from.
        top_n:
            Number of terms to return.
        with_scores:
            If True, return ``(term, score)`` pairs instead of bare terms.

        Returns
        -------
        list
            Terms (or term/score pairs), most distinctive first.
        """
        topic_counts = self._count_terms(topic_docs)
        doc_frequencies = self._document_frequencies(all_docs)
        total_docs = float(len(all_docs))

        scores: Counter = Counter()
        for term, tf in topic_counts.items():
            # Terms unseen in the background corpus count as df=1.
            df = doc_frequencies.get(term) or 1
            scores[term] = tf * math.log(total_docs / df) if total_docs else 0.0

        return self._top(scores, top_n, with_scores)

    # ------------------------------------------------------------------
    # Supplementary extraction modes
    # ------------------------------------------------------------------

    def extract_tfidf_terms(self, documents: Sequence[str], top_n: int = 20) -> List[str]:
        """
        Standard per-document TF-IDF, aggregated by summing over documents.

        TF is length-normalised within each document.
        """
        doc_frequencies = self._document_frequencies(documents)
        total_docs = float(len(documents))

        aggregated: Counter = Counter()
        for doc in documents:
            counts = self._count_terms([doc])
            doc_length = float(sum(counts.values()))
            if not doc_length:
                continue
            for term, count in counts.items():
                df = doc_frequencies.get(term) or 1
                aggregated[term] += (count / doc_length) * math.log(total_docs / df)

        return self._top(aggregated, top_n, with_scores=False)

    def extract_frequent_terms(self, documents: Sequence[str], top_n: int = 20) -> List[str]:
        """Most frequent tokens across ``documents``."""
        return self._top(self._count_terms(documents), top_n, with_scores=False)

    def extract_ngrams(self, text: str, n: int = 2) -> List[str]:
        """Space-joined n-grams over the filtered token stream of ``text``."""
        words = self.tokenize(text)
        return [" ".join(words[i : i + n]) for i in range(len(words) - n + 1)]

    def extract_mixed_terms(self, documents: Sequence[str], top_n: int = 20) -> List[str]:
        """
        Unigrams and bigrams ranked by raw count.

        Only terms that occur more than once are kept, which removes most
        accidental bigrams.
        """
        counts: Counter = Counter()
        for doc in documents:
            counts.update(self.tokenize(doc))
            counts.update(self.extract_ngrams(doc, n=2))

        repeated = Counter({term: c for term, c in counts.items() if c > 1})
        return self._top(repeated, top_n, with_scores=False)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _count_terms(self, documents: Iterable[str]) -> Counter:
        counts: Counter = Counter()
        for doc in documents:
            counts.update(self.tokenize(doc))
        return counts

    def _document_frequencies(self, documents: Iterable[str]) -> Counter:
        frequencies: Counter = Counter()
        for doc in documents:
            frequencies.update(set(self.tokenize(doc)))
        return frequencies

    @staticmethod
    def _top(scores: Counter, top_n: int, with_scores: bool):
        # sorted() is stable and Counter keeps insertion order, so ties
        # stay in first-seen order.
        ranked = sorted(scores.items(), key=lambda item: -item[1])[: max(top_n, 0)]
        if with_scores:
            return [(term, float(score)) for term, score in ranked]
        return [term for term, _ in ranked]
