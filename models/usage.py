"""Token usage reported by a single provider call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Usage:
    """
    Token counters for one LLM call.

    Field names differ per backend; adapters map them onto these four
    counters and default anything missing to zero.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @classmethod
    def from_mapping(
        cls,
        data: dict[str, Any] | None,
        input_keys: tuple[str, ...],
        output_keys: tuple[str, ...],
        cache_read_keys: tuple[str, ...] = (),
        cache_write_keys: tuple[str, ...] = (),
    ) -> Usage:
        """
        Read counters from a backend usage object, tolerating missing keys.

        Each counter takes the first truthy integer among its candidate keys.
        """
        if not isinstance(data, dict):
            return cls()

        def pick(keys: tuple[str, ...]) -> int:
            for key in keys:
                value = data.get(key)
                if isinstance(value, (int, float)) and value:
                    return int(value)
            return 0

        return cls(
            input_tokens=pick(input_keys),
            output_tokens=pick(output_keys),
            cache_read_tokens=pick(cache_read_keys),
            cache_write_tokens=pick(cache_write_keys),
        )

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary for serialization."""
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "cache_write_tokens": self.cache_write_tokens,
        }
