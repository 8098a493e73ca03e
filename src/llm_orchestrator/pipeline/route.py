"""
Content-based routing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..errors import NoMatchingRouteError
from .base import Op, as_op

logger = logging.getLogger(__name__)


def normalize_discriminator(value: Any) -> Any:
    """Strip surrounding whitespace from string discriminators. Other values are used as-is."""
    if isinstance(value, str):
        return value.strip()
    return value


class Route(Op):
    """
    Classify the input, then run only the matching branch.

    The classifier (an op, agent or callable) runs on the input and yields a
    discriminator, which is matched exactly against the branch table. The
    chosen branch receives the original input. A discriminator with no
    branch raises ``NoMatchingRouteError``; there is no fallback branch.

    Example:
        ```python
        router = Route(
            classifier_agent,
            {"billing": billing_agent, "technical": support_agent},
        )
        answer = await router.call("My invoice is wrong")
        ```
    """

    def __init__(self, classifier: Any, branches: Mapping[Any, Any]) -> None:
        if not branches:
            raise ValueError("Route needs at least one branch")
        self.classifier = as_op(classifier)
        self.branches: dict[Any, Op] = {
            normalize_discriminator(key): as_op(branch) for key, branch in branches.items()
        }

    async def execute(self, input: Any) -> Any:
        discriminator = normalize_discriminator(await self.classifier.run(input))
        try:
            branch = self.branches.get(discriminator)
        except TypeError:
            branch = None
        if branch is None:
            logger.info("No route for discriminator %r (routes: %s)", discriminator, list(self.branches))
            raise NoMatchingRouteError(discriminator)
        return await branch.run(input)

    def __repr__(self) -> str:
        return f"Route({self.classifier!r}, routes={list(self.branches)!r})"


__all__ = ["Route", "normalize_discriminator"]
