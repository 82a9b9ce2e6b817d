"""
topic_labeler.py

Façade over the labeling strategies.

TopicLabeler picks a default strategy at construction, allows a per-call
override, and normalises every strategy's dict into a :class:`LabelResult`
so callers never branch on strategy-specific shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .labeling_strategies import (
    LabelingMethod,
    LabelingStrategy,
    TermsInput,
    create_strategy,
)


_CORE_KEYS = ("label", "description", "method", "confidence", "themes")


@dataclass
class LabelResult:
    """
    Normalised label for one topic.

    Attributes
    ----------
    label:
        Human-readable label ("Unknown Topic" if the strategy gave none).
    description:
        Optional one-line description.
    method:
        Strategy that produced the result, e.g. ``"term_based"``,
        ``"hybrid"`` or ``"hybrid_fallback"``.
    confidence:
        Score in [0, 1] (0.5 if the strategy gave none).
    themes:
        Short theme names, possibly empty.
    metadata:
        Any extra keys the strategy returned (e.g. ``term_label``).
    """

    label: str = "Unknown Topic"
    description: Optional[str] = None
    method: str = LabelingMethod.HYBRID.value
    confidence: float = 0.5
    themes: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class TopicLabeler:
    """
    Generate labels for topics with a configurable strategy.

    Parameters
    ----------
    method:
        Default strategy name or :class:`LabelingMethod` (aliases such as
        ``"fast"`` or ``"quality"`` are accepted; unknown names mean hybrid).
    llm_client:
        Optional generative client with ``generate(prompt, max_tokens,
        temperature, response_format=None)``. ``None`` makes the LLM-backed
        strategies fall back to term-based labels.
    log_fn:
        Optional callable receiving fallback/diagnostic messages.
    """

    def __init__(
        self,
        method: Union[str, LabelingMethod, None] = LabelingMethod.HYBRID,
        llm_client: Optional[Any] = None,
        log_fn: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.method = LabelingMethod.from_name(method)
        self.llm_client = llm_client
        self._log_fn = log_fn
        self.strategy: LabelingStrategy = create_strategy(
            self.method, llm_client=llm_client, log_fn=log_fn
        )

    def generate_label(
        self,
        terms: TermsInput,
        documents: Sequence[str] = (),
        topic: Any = None,
        method: Union[str, LabelingMethod, None] = None,
    ) -> LabelResult:
        """
        Label one topic.

        ``method`` overrides the default strategy for this call only; the
        instance default is left untouched.
        """
        strategy = self.strategy
        if method is not None:
            override = LabelingMethod.from_name(method)
            if override is not self.method:
                strategy = create_strategy(
                    override, llm_client=self.llm_client, log_fn=self._log_fn
                )

        raw = strategy.generate_label(topic, terms, list(documents))
        return self._normalize(raw)

    def generate_simple_label(
        self,
        terms: TermsInput,
        documents: Sequence[str] = (),
        method: Union[str, LabelingMethod, None] = None,
    ) -> str:
        return self.generate_label(terms, documents, method=method).label

    def set_strategy(self, method: Union[str, LabelingMethod, None]) -> None:
        """Change the default strategy."""
        self.method = LabelingMethod.from_name(method)
        self.strategy = create_strategy(
            self.method, llm_client=self.llm_client, log_fn=self._log_fn
        )

    def _normalize(self, result: Dict[str, Any]) -> LabelResult:
        confidence = result.get("confidence")
        return LabelResult(
            label=result.get("label") or "Unknown Topic",
            description=result.get("description"),
            method=str(result.get("method") or self.method.value),
            confidence=0.5 if confidence is None else float(confidence),
            themes=list(result.get("themes") or []),
            metadata={k: v for k, v in result.items() if k not in _CORE_KEYS},
        )
