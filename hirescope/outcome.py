"""
Best-effort sub-operation results.

Every step that may degrade to a default signal (commit probes, clones,
README fetches, external link fetches) returns an Outcome instead of raising,
and the call site collapses it with or_default().
"""

from typing import Any, Awaitable, NamedTuple


class Outcome(NamedTuple):
    """Either a value or the exception that prevented it."""

    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def or_default(self, default: Any) -> Any:
        """Return the value, or the default when the operation failed."""
        if self.error is not None:
            return default
        return self.value

    def describe(self) -> str:
        if self.error is None:
            return "ok"
        return str(self.error) or type(self.error).__name__


async def attempt(awaitable: Awaitable[Any]) -> Outcome:
    """Await an operation and capture any failure as an Outcome.

    Cancellation is not captured.
    """
    try:
        return Outcome(value=await awaitable)
    except Exception as e:
        return Outcome(error=e)
