# src/aclio/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/LLM providers/entitlement backends swappable and makes testing easier.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Protocol

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Chat completion client (OpenAI/Groq-compatible)."""

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...

    def complete(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            *,
            max_tokens: int = 2000,
    ) -> str: ...


class KVStore(Protocol):
    """JSON key-value storage (the UserDefaults/localStorage analogue)."""

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...
    def has(self, key: str) -> bool: ...
    def keys(self, prefix: str = "") -> list[str]: ...
    def snapshot(self, keys: Iterable[str]) -> dict[str, Any]: ...
    def restore(self, mapping: Mapping[str, Any]) -> None: ...
    def clear(self) -> None: ...


class EntitlementProvider(Protocol):
    """
    Subscription backend (RevenueCat in the mobile clients).

    purchase() raises on failure; is_entitled() reflects the current entitlement.
    """

    def purchase(self, product_id: str) -> bool: ...
    def restore(self) -> bool: ...
    def is_entitled(self) -> bool: ...
