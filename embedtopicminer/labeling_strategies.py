"""
labeling_strategies.py

Interchangeable algorithms that turn a topic's distinctive terms and a few
sample documents into a human-readable label.

Strategies
----------
- TermBasedStrategy : fast, deterministic; builds the label from the top terms.
- LLMBasedStrategy  : asks a generative client for a structured JSON label;
                      falls back to TermBasedStrategy on any failure.
- HybridStrategy    : computes the term-based label first, then asks the
                      generative client for a lighter "improve this label"
                      pass; falls back to the term-based label.

All strategies return a plain dict:

    {"label", "description", "confidence", "method", "themes", ...}

Strategies never raise for labeling problems. Degradation is visible in the
``method`` field (e.g. ``"hybrid_fallback"``).
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, field_validator


MAX_LABEL_LENGTH = 50

_JSON_BLOCK_RE = re.compile(r"\{.*\}", re.DOTALL)
_EDGE_QUOTES_RE = re.compile(r"^[\"']|[\"']$")

TermsInput = Sequence[Union[str, Tuple[str, float]]]


# -------------------------------------------------------------------
# Method identifiers
# -------------------------------------------------------------------


class LabelingMethod(str, Enum):
    """Available labeling strategies."""

    TERM_BASED = "term_based"
    LLM_BASED = "llm_based"
    HYBRID = "hybrid"

    @classmethod
    def from_name(cls, name: Optional[Union[str, "LabelingMethod"]]) -> "LabelingMethod":
        """
        Resolve a method name or alias. Unknown or missing names resolve to
        :attr:`HYBRID`.
        """
        if isinstance(name, cls):
            return name
        key = str(name or "").strip().lower()
        return _METHOD_ALIASES.get(key, cls.HYBRID)


_METHOD_ALIASES: Dict[str, LabelingMethod] = {
    "fast": LabelingMethod.TERM_BASED,
    "terms": LabelingMethod.TERM_BASED,
    "term_based": LabelingMethod.TERM_BASED,
    "quality": LabelingMethod.LLM_BASED,
    "llm": LabelingMethod.LLM_BASED,
    "llm_based": LabelingMethod.LLM_BASED,
    "hybrid": LabelingMethod.HYBRID,
    "auto": LabelingMethod.HYBRID,
    "smart": LabelingMethod.HYBRID,
}


# -------------------------------------------------------------------
# Pydantic model for structured LLM output
# -------------------------------------------------------------------


class TopicLabelModel(BaseModel):
    """
    Structured label returned by the generative client.

    Attributes
    ----------
    label:
        Short topic label (2-4 words is ideal).
    description:
        One sentence describing what connects the documents.
    themes:
        A few short theme names.
    confidence:
        Self-reported coherence of the topic in [0, 1].
    """

    label: str = Field(..., description="A 2-4 word topic label.")
    description: Optional[str] = Field(
        None,
        description="One sentence describing what connects these documents.",
    )
    themes: List[str] = Field(default_factory=list)
    confidence: Optional[float] = None

    @field_validator("themes", mode="before")
    @classmethod
    def _split_theme_string(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [t.strip() for t in value.split(",") if t.strip()]
        return value


# -------------------------------------------------------------------
# Shared helpers
# -------------------------------------------------------------------


def clean_label(label: Optional[str]) -> str:
    """
    Strip quotes, keep only the first line and cap the length at
    ``MAX_LABEL_LENGTH`` characters (ellipsis included).
    """
    if not label:
        return "Unknown Topic"

    cleaned = _EDGE_QUOTES_RE.sub("", str(label).strip())
    cleaned = cleaned.split("\n", 1)[0].strip()
    if not cleaned:
        return "Unknown Topic"
    if len(cleaned) > MAX_LABEL_LENGTH:
        return cleaned[: MAX_LABEL_LENGTH - 3] + "..."
    return cleaned


def capitalize_phrase(phrase: str) -> str:
    """``"machine_learning"`` -> ``"Machine Learning"``."""
    return " ".join(part.capitalize() for part in re.split(r"[\s_-]", phrase) if part)


def split_terms(terms: TermsInput) -> Tuple[List[str], Optional[List[float]]]:
    """
    Separate plain terms from scored ``(term, score)`` pairs.

    Returns the term strings and, when every entry carried a score, the
    aligned scores (otherwise ``None``).
    """
    names: List[str] = []
    scores: List[float] = []
    scored = bool(terms)
    for entry in terms:
        if isinstance(entry, (tuple, list)) and len(entry) == 2:
            names.append(str(entry[0]))
            scores.append(float(entry[1]))
        else:
            names.append(str(entry))
            scored = False
    return names, (scores if scored else None)


def _preview(text: str, limit: int) -> str:
    return f"{text[:limit]}..." if len(text) > limit else text


# -------------------------------------------------------------------
# Strategies
# -------------------------------------------------------------------


class LabelingStrategy(ABC):
    """Common interface: ``generate_label(topic, terms, documents) -> dict``."""

    method: LabelingMethod

    def __init__(self, log_fn: Optional[Callable[[str], None]] = None) -> None:
        self._log_fn = log_fn or (lambda _msg: None)

    @abstractmethod
    def generate_label(
        self,
        topic: Any,
        terms: TermsInput,
        documents: Sequence[str],
    ) -> Dict[str, Any]:
        ...

    def _log(self, msg: str) -> None:
        try:
            self._log_fn(msg)
        except Exception:
            # Never let logging break labeling
            pass

    @staticmethod
    def select_representative_docs(documents: Sequence[str], k: int = 3) -> List[str]:
        return list(documents[:k])


class TermBasedStrategy(LabelingStrategy):
    """Label from the top distinctive terms only. No external calls."""

    method = LabelingMethod.TERM_BASED

    def generate_label(
        self,
        topic: Any,
        terms: TermsInput,
        documents: Sequence[str],
    ) -> Dict[str, Any]:
        names, scores = split_terms(terms)
        if not names:
            return {
                "label": "Empty Topic",
                "description": "No terms found",
                "method": self.method.value,
                "confidence": 0.0,
                "themes": [],
            }

        label_terms = [t for t in names[:3] if len(t) > 3]
        if len(label_terms) >= 2:
            label = f"{capitalize_phrase(label_terms[0])} & {capitalize_phrase(label_terms[1])}"
        else:
            label = capitalize_phrase(label_terms[0] if label_terms else names[0])

        return {
            "label": label,
            "description": f"Documents about {', '.join(names[:5])}",
            "method": self.method.value,
            "confidence": self._confidence(names, scores),
            "themes": [],
        }

    @staticmethod
    def _confidence(names: List[str], scores: Optional[List[float]]) -> float:
        if scores:
            top = scores[:5]
            return max(0.0, min(sum(top) / len(top), 1.0))
        # more distinctive terms, more confidence
        return min(len(names) / 20.0, 1.0)


class LLMBasedStrategy(LabelingStrategy):
    """
    Full generative labeling with a structured JSON response.

    Falls back to :class:`TermBasedStrategy` when no client is configured, the
    call raises, or the response cannot be validated.
    """

    method = LabelingMethod.LLM_BASED

    def __init__(
        self,
        llm_client: Optional[Any] = None,
        log_fn: Optional[Callable[[str], None]] = None,
    ) -> None:
        super().__init__(log_fn=log_fn)
        self.llm_client = llm_client
        self._term_strategy = TermBasedStrategy(log_fn=log_fn)

    def generate_label(
        self,
        topic: Any,
        terms: TermsInput,
        documents: Sequence[str],
    ) -> Dict[str, Any]:
        if self.llm_client is None:
            return self._term_strategy.generate_label(topic, terms, documents)

        names, _ = split_terms(terms)
        try:
            prompt = self.build_prompt(self.select_representative_docs(documents, k=3), names)
            raw = self.llm_client.generate(
                prompt=prompt,
                max_tokens=150,
                temperature=0.3,
                response_format={"type": "json_object"},
            )
            parsed = self.parse_response(raw)
        except Exception as e:
            self._log(f"[LLMBasedStrategy] LLM labeling failed, using terms: {e}")
            return self._term_strategy.generate_label(topic, terms, documents)

        label = clean_label(parsed.label)
        confidence = 0.8 if parsed.confidence is None else parsed.confidence
        return {
            "label": label,
            "description": parsed.description or f"Topic about {label}",
            "themes": list(parsed.themes),
            "method": self.method.value,
            "confidence": max(0.0, min(float(confidence), 1.0)),
        }

    @staticmethod
    def build_prompt(documents: Sequence[str], terms: Sequence[str]) -> str:
        doc_samples = "\n\n".join(
            f"Document {i + 1}:\n{_preview(doc, 300)}" for i, doc in enumerate(documents)
        )
        return "\n".join(
            [
                "Analyze this cluster of related documents and provide a structured summary.",
                "",
                f"Distinctive terms found: {', '.join(terms[:10])}",
                "",
                "Sample documents:",
                doc_samples,
                "",
                "Provide a JSON response with:",
                "{",
                '  "label": "A 2-4 word topic label",',
                '  "description": "One sentence describing what connects these documents",',
                '  "themes": ["theme1", "theme2", "theme3"],',
                '  "confidence": 0.0-1.0 score of how coherent this topic is',
                "}",
                "",
                "Focus on what meaningfully connects these documents, not just common words.",
            ]
        )

    @staticmethod
    def parse_response(raw_output: Any) -> TopicLabelModel:
        """
        Validate the model output as :class:`TopicLabelModel`.

        Accepts bare JSON or JSON embedded in surrounding prose.
        """
        if not isinstance(raw_output, str):
            raise TypeError(f"expected text from the LLM, got {type(raw_output).__name__}")

        try:
            return TopicLabelModel.model_validate_json(raw_output)
        except ValidationError:
            match = _JSON_BLOCK_RE.search(raw_output)
            if match is None:
                raise
            return TopicLabelModel.model_validate_json(match.group(0))


class HybridStrategy(LabelingStrategy):
    """
    Term-based label refined by a short generative pass.

    The result's confidence is the mean of the term-based confidence and the
    enhancement confidence (0.7 when the model returned a label line, else 0.3).
    """

    method = LabelingMethod.HYBRID

    def __init__(
        self,
        llm_client: Optional[Any] = None,
        log_fn: Optional[Callable[[str], None]] = None,
    ) -> None:
        super().__init__(log_fn=log_fn)
        self.llm_client = llm_client
        self._term_strategy = TermBasedStrategy(log_fn=log_fn)

    def generate_label(
        self,
        topic: Any,
        terms: TermsInput,
        documents: Sequence[str],
    ) -> Dict[str, Any]:
        term_result = self._term_strategy.generate_label(topic, terms, documents)

        if self.llm_client is None:
            return {**term_result, "method": "hybrid_fallback"}

        names, _ = split_terms(terms)
        try:
            prompt = self.build_enhancement_prompt(
                term_result["label"],
                names,
                documents[0] if documents else "",
            )
            raw = self.llm_client.generate(prompt=prompt, max_tokens=100, temperature=0.3)
            enhanced = self.parse_enhancement_response(raw)
        except Exception as e:
            self._log(f"[HybridStrategy] enhancement failed, using terms: {e}")
            return {**term_result, "method": "hybrid_fallback"}

        return {
            "label": enhanced.get("label") or term_result["label"],
            "description": enhanced.get("description") or term_result["description"],
            "method": self.method.value,
            "confidence": (term_result["confidence"] + enhanced["confidence"]) / 2.0,
            "term_label": term_result["label"],
            "themes": enhanced.get("themes", []),
        }

    @staticmethod
    def build_enhancement_prompt(term_label: str, terms: Sequence[str], sample_doc: str) -> str:
        return "\n".join(
            [
                f'Current topic label based on terms: "{term_label}"',
                f"Key terms: {', '.join(terms[:8])}",
                "",
                "Sample document:",
                _preview(sample_doc, 200),
                "",
                "Provide a better topic label if possible (2-4 words), or confirm the current one.",
                "Also provide a one-sentence description.",
                "",
                "Format:",
                "Label: [your label]",
                "Description: [one sentence]",
                "Themes: [comma-separated list]",
            ]
        )

    @staticmethod
    def parse_enhancement_response(response: Any) -> Dict[str, Any]:
        """Parse the ``Label:`` / ``Description:`` / ``Themes:`` line format."""
        if not isinstance(response, str):
            raise TypeError(f"expected text from the LLM, got {type(response).__name__}")

        result: Dict[str, Any] = {}
        for line in response.splitlines():
            line = line.strip()
            if line.startswith("Label:"):
                value = line[len("Label:") :].strip()
                if value:
                    result["label"] = clean_label(value)
            elif line.startswith("Description:"):
                value = line[len("Description:") :].strip()
                if value:
                    result["description"] = value
            elif line.startswith("Themes:"):
                themes = line[len("Themes:") :].split(",")
                result["themes"] = [t.strip() for t in themes if t.strip()]

        result["confidence"] = 0.7 if result.get("label") else 0.3
        return result


# -------------------------------------------------------------------
# Factory
# -------------------------------------------------------------------


def create_strategy(
    method: Optional[Union[str, LabelingMethod]],
    llm_client: Optional[Any] = None,
    log_fn: Optional[Callable[[str], None]] = None,
) -> LabelingStrategy:
    """Build the strategy for ``method``; unknown names give :class:`HybridStrategy`."""
    resolved = LabelingMethod.from_name(method)
    if resolved is LabelingMethod.TERM_BASED:
        return TermBasedStrategy(log_fn=log_fn)
    if resolved is LabelingMethod.LLM_BASED:
        return LLMBasedStrategy(llm_client=llm_client, log_fn=log_fn)
    return HybridStrategy(llm_client=llm_client, log_fn=log_fn)
