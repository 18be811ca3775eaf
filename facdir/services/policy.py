"""Per-operation failure policies.

Every data access operation declares how it reacts to a store failure:

* ``PROPAGATE`` - raise the typed :class:`~facdir.errors.DirectoryError`
  (all writes, count queries);
* ``EMPTY`` - log and return ``[]`` (list reads);
* ``NONE`` - log and return ``None`` (single-record reads; a transport
  failure is indistinguishable from "not found" for these callers).

The declared policy is available as ``func.failure_policy``.  Only
:class:`DirectoryError` is subject to the policy; any other exception is a
bug and always propagates.  Rows a model cannot read are reported by the
services as :class:`~facdir.errors.Unknown`, so they fall under the policy
as well.
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from typing import Any, Callable, TypeVar

from facdir.errors import DirectoryError

logger = logging.getLogger("facdir")

F = TypeVar("F", bound=Callable[..., Any])


class FailurePolicy(str, Enum):
    PROPAGATE = "propagate"
    EMPTY = "empty"
    NONE = "none"


def failure_policy(
    policy: FailurePolicy, empty: Callable[[], Any] = list
) -> Callable[[F], F]:
    """Decorate a data access operation with its failure *policy*.

    *empty* builds the value returned under ``EMPTY`` (a list by default).
    """

    def decorator(func: F) -> F:
        if policy is FailurePolicy.PROPAGATE:
            func.failure_policy = policy  # type: ignore[attr-defined]
            return func

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except DirectoryError as exc:
                logger.warning(
                    "Read degraded after store failure",
                    extra={
                        "operation": func.__qualname__,
                        "kind": exc.kind,
                        "code": exc.code,
                        "error": exc.message,
                        "fallback": policy.value,
                    },
                )
                return empty() if policy is FailurePolicy.EMPTY else None

        wrapper.failure_policy = policy  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator


propagates = failure_policy(FailurePolicy.PROPAGATE)
empty_on_failure = failure_policy(FailurePolicy.EMPTY)
none_on_failure = failure_policy(FailurePolicy.NONE)
