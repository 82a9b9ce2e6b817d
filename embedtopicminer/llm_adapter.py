"""
llm_adapter.py

Adapter that turns common LLM backends into the small generative-client
interface used by the labeling strategies:

    client.generate(prompt, max_tokens, temperature, response_format=None) -> str

Supported backends
------------------
1. A simple LLM callable (recommended default)
   - Pass ``llm=`` as a sync or async callable: ``prompt: str -> str``.

2. A LangChain / chat model wrapper
   - Any object with ``.invoke(prompt)`` or ``.ainvoke(prompt)``
     (e.g. ``ChatOpenAI``) can be passed as ``llm=``.

3. The OpenAI Agents SDK
   - Pass an ``Agent`` via ``agent=``; the adapter calls
     ``Runner.run_sync(agent, prompt)``. The ``agents`` package is imported
     lazily so it is only required when this path is used.

Any object that already exposes a ``generate(...)`` method with the signature
above can be handed to the labelers directly, without this adapter.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import re
from typing import Any, Dict, Optional, Protocol


_JSON_BLOCK_RE = re.compile(r"\{.*\}", re.DOTALL)


class GenerativeClient(Protocol):
    """Structural type of the generative collaborator."""

    def generate(
        self,
        prompt: str,
        max_tokens: int = 100,
        temperature: float = 0.3,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> str:
        ...


class LLMAdapter:
    """
    Wrap a callable, a LangChain-style model or an Agents SDK ``Agent`` as a
    :class:`GenerativeClient`.

    Exactly one of ``agent`` or ``llm`` must be provided.

    ``max_tokens`` and ``temperature`` are forwarded as keyword arguments only
    to bare callables that declare them; chat models and agents are expected
    to be configured by the caller.
    """

    def __init__(self, llm: Optional[Any] = None, *, agent: Optional[Any] = None) -> None:
        if (agent is None) == (llm is None):
            raise ValueError(
                "LLMAdapter expects exactly one of `agent` or `llm`.\n"
                "Pass an OpenAI Agents `Agent` via `agent=`, or a plain "
                "LLM callable / object via `llm=`."
            )
        self.llm = llm
        self.agent = agent

    def available(self) -> bool:
        return self.llm is not None or self.agent is not None

    # ------------------------------------------------------------------
    # GenerativeClient API
    # ------------------------------------------------------------------

    def generate(
        self,
        prompt: str,
        max_tokens: int = 100,
        temperature: float = 0.3,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> str:
        out = self._call_backend(prompt, max_tokens=max_tokens, temperature=temperature)
        text = self._to_text(out)

        if response_format and response_format.get("type") == "json_object":
            return self._ensure_json(text)
        return text

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _call_backend(self, prompt: str, *, max_tokens: int, temperature: float) -> Any:
        # --- 1) Agents SDK path -----------------------------------------
        if self.agent is not None:
            try:
                from agents import Runner  # OpenAI Agents SDK
            except ImportError as e:
                raise ImportError(
                    "LLMAdapter was configured with `agent=...`, but the "
                    "`agents` package is not installed. "
                    "Install with 'pip install openai-agents'."
                ) from e
            return Runner.run_sync(self.agent, prompt)

        backend = self.llm

        # --- 2) Bare callable -------------------------------------------
        if callable(backend) and not hasattr(backend, "invoke") and not hasattr(backend, "ainvoke"):
            kwargs = self._supported_kwargs(
                backend, max_tokens=max_tokens, temperature=temperature
            )
            return self._resolve(backend(prompt, **kwargs))

        # --- 3) LangChain-style -----------------------------------------
        if hasattr(backend, "invoke"):
            return backend.invoke(prompt)
        if hasattr(backend, "ainvoke"):
            return self._resolve(backend.ainvoke(prompt))

        raise TypeError(
            "llm= must be either a callable, or an object with "
            "an `.invoke(prompt)` or `.ainvoke(prompt)` method."
        )

    @staticmethod
    def _supported_kwargs(func: Any, **candidates: Any) -> Dict[str, Any]:
        try:
            params = inspect.signature(func).parameters
        except (TypeError, ValueError):
            return {}
        if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values()):
            return dict(candidates)
        return {k: v for k, v in candidates.items() if k in params}

    @staticmethod
    def _resolve(out: Any) -> Any:
        if not inspect.isawaitable(out):
            return out

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            if inspect.iscoroutine(out):
                out.close()
            raise RuntimeError(
                "LLMAdapter received an async LLM but was called from a running "
                "event loop (e.g. Jupyter). Pass a synchronous callable, or run "
                "the topic modeling outside the event loop."
            )

        async def _await() -> Any:
            return await out

        return asyncio.run(_await())

    @staticmethod
    def _to_text(out: Any) -> str:
        """Normalise the many response shapes into a plain string."""
        # simple string
        if isinstance(out, str):
            return out.strip()

        # Agents SDK RunResult
        final_output = getattr(out, "final_output", None)
        if final_output is not None:
            return str(final_output).strip()

        # LangChain messages (have `.content`)
        content = getattr(out, "content", None)
        if content is not None:
            return str(content).strip()

        # OpenAI-style responses with .choices[0].message.content
        choices = getattr(out, "choices", None)
        if choices:
            first = choices[0]
            msg = getattr(first, "message", None) or getattr(first, "delta", None)
            if msg is not None and getattr(msg, "content", None) is not None:
                return str(msg.content).strip()

        # dict-like { "text": "..."} or {"content": "..."}
        if isinstance(out, dict):
            for key in ("text", "content", "output"):
                if key in out:
                    return str(out[key]).strip()

        return str(out).strip()

    @staticmethod
    def _ensure_json(text: str) -> str:
        """
        Return a JSON object string for ``text``.

        Prefers the text itself, then the first ``{...}`` block inside it, and
        finally synthesises a minimal object from the first line.
        """
        candidates = [text]
        match = _JSON_BLOCK_RE.search(text)
        if match:
            candidates.append(match.group(0))

        for candidate in candidates:
            try:
                if isinstance(json.loads(candidate), dict):
                    return candidate
            except json.JSONDecodeError:
                continue

        lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
        return json.dumps(
            {
                "label": lines[0] if lines else "Unknown",
                "description": text,
                "confidence": 0.5,
            }
        )
