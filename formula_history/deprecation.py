"""Process-wide switch for strict deprecation handling.

Formulas written against an older schema may use keys that are now
deprecated. Normally this only emits a DeprecationWarning. While the switch
is on, the parser raises MethodDeprecatedError instead, so history walks can
treat such revisions as unusable.

The switch is global state. Toggle it only through
``raise_deprecation_exceptions()``, which holds a lock for the duration of
the block and restores the previous value on exit.
"""

from __future__ import annotations

import threading
import warnings
from collections.abc import Iterator
from contextlib import contextmanager

from .exceptions import MethodDeprecatedError

_lock = threading.RLock()
_raise_deprecation_exceptions = False


def deprecation_exceptions_enabled() -> bool:
    """Return True while deprecations are raised instead of warned."""
    return _raise_deprecation_exceptions


@contextmanager
def raise_deprecation_exceptions(enabled: bool = True) -> Iterator[None]:
    """Set the strict-deprecation switch for the duration of the block."""
    global _raise_deprecation_exceptions
    with _lock:
        previous = _raise_deprecation_exceptions
        _raise_deprecation_exceptions = enabled
        try:
            yield
        finally:
            _raise_deprecation_exceptions = previous


def odeprecated(method: str, replacement: str, *, strict: bool | None = None) -> None:
    """Report use of a deprecated formula key.

    Args:
        method: The deprecated key (e.g., "bottle.sha1").
        replacement: What to use instead.
        strict: Raise instead of warning. ``None`` follows the global switch.

    Raises:
        MethodDeprecatedError: When strict.
    """
    message = f"Calling {method} is deprecated! Use {replacement} instead."
    if strict is None:
        strict = _raise_deprecation_exceptions
    if strict:
        raise MethodDeprecatedError(message)
    warnings.warn(message, DeprecationWarning, stacklevel=2)
