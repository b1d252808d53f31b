from __future__ import annotations

from typing import Optional


class Credential:
    """An in-memory secret that refuses to show itself in reprs or logs.

    Use as a context manager to scope its lifetime; the value is dropped on
    exit and ``reveal()`` returns ``None`` from then on.
    """

    __slots__ = ("_value",)

    def __init__(self, value: Optional[str] = None):
        value = (value or "").strip()
        self._value: Optional[str] = value or None

    def __bool__(self) -> bool:
        return self._value is not None

    def __repr__(self) -> str:
        return "Credential(***)" if self._value else "Credential(empty)"

    __str__ = __repr__

    def reveal(self) -> Optional[str]:
        return self._value

    def bearer_header(self) -> dict[str, str]:
        if not self._value:
            raise ValueError("no credential available")
        return {"Authorization": f"Bearer {self._value}"}

    def clear(self) -> None:
        self._value = None

    def __enter__(self) -> "Credential":
        return self

    def __exit__(self, *exc) -> None:
        self.clear()
