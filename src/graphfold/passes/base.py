from __future__ import annotations

import logging
from dataclasses import dataclass, field

from graphfold.ir import Graph, Op

logger = logging.getLogger(__name__)


class GraphTransformerError(Exception):
    """Raised when a graph transformer cannot complete."""

    pass


class FusionInternalError(GraphTransformerError):
    """A fusion hit a state its own checks should have ruled out.

    Rewrites already committed to the graph are not rolled back.
    """

    pass


@dataclass
class GraphTransformer:
    """Base for passes that rewrite a graph in place.

    Attributes:
        compatible_providers: Execution providers whose nodes this pass may
            touch. Empty means every provider.
    """

    compatible_providers: frozenset[str] = field(default_factory=frozenset)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def apply(self, graph: Graph, graph_level: int = 0) -> bool:
        """Run the pass over `graph` and its nested graphs. Returns True if anything changed."""

        modified = self._apply_impl(graph, graph_level)
        logger.debug(f"{self.name} on {graph.name!r} (level {graph_level}): modified={modified}")
        return modified

    def _recurse(self, op: Op, graph_level: int) -> bool:
        modified = False
        for sub in op.subgraphs():
            modified |= self._apply_impl(sub, graph_level + 1)
        return modified

    def _apply_impl(self, graph: Graph, graph_level: int) -> bool:
        raise NotImplementedError


def apply_until_fixpoint(transformer: GraphTransformer, graph: Graph, max_steps: int = 10) -> int:
    """Apply `transformer` until it stops changing the graph.

    Returns the number of runs that modified the graph.
    """

    if max_steps <= 0:
        raise ValueError("max_steps must be > 0")
    changed = 0
    for _ in range(max_steps):
        if not transformer.apply(graph):
            break
        changed += 1
    else:
        logger.warning(f"{transformer.name} still modifying {graph.name!r} after {max_steps} steps")
    return changed
