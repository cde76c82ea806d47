from __future__ import annotations

import logging
from dataclasses import dataclass

from graphfold.ir import Graph, multiply, scale_along_axis

from .base import FusionInternalError, GraphTransformer
from .matcher import find_candidate
from .validator import FusionCandidate, validate

logger = logging.getLogger(__name__)


@dataclass
class ConvMulFusion(GraphTransformer):
    """Folds a constant Mul that follows a Conv into the Conv's weight and bias.

        y = Conv(x, W, B) * S   ==>   y = Conv(x, W * S, B * S)

    S is a scalar or holds one value per output channel. The Mul is removed and
    its consumers read the Conv output instead.
    """

    def _apply_impl(self, graph: Graph, graph_level: int) -> bool:
        removed: list[int] = []
        modified = False

        for op in graph.iter_nodes():
            modified |= self._recurse(op, graph_level)

            if op.index in removed:
                continue
            match = find_candidate(graph, op, self.compatible_providers)
            if match is None:
                continue
            candidate = validate(graph, *match)
            if candidate is None:
                continue

            self._fold(graph, candidate)
            removed.append(candidate.mul.index)

        # Removal waits until the scan is over.
        for index in removed:
            graph.remove_node(index)

        if removed:
            logger.info(f"{self.name}: folded {len(removed)} Mul node(s) in {graph.name!r} (level {graph_level})")
        return modified or bool(removed)

    def _fold(self, graph: Graph, c: FusionCandidate) -> None:
        new_weight = scale_along_axis(c.weight, c.scale, 0)
        new_bias = None
        if c.bias is not None:
            new_bias = multiply(c.bias, c.scale) if c.scale.rank == 0 else scale_along_axis(c.bias, c.scale, 0)

        graph.replace_initializer(new_weight)
        if new_bias is not None:
            graph.replace_initializer(new_bias)

        mul_out = c.mul.outputs[0]
        conv_out = c.conv.outputs[0]
        for index in graph.consumers(mul_out):
            user = graph.node(index)
            if user is None:
                raise FusionInternalError(
                    f"Consumer node {index} of {mul_out.name!r} is not in graph {graph.name!r}"
                )
            for slot, t in enumerate(user.inputs):
                if t is mul_out:
                    user.inputs[slot] = conv_out
                    conv_out.add_user(user)
            mul_out.remove_user(user)

        logger.debug(
            f"Folded {c.mul.name!r} into {c.conv.name!r}: scale {c.scale.shape}, "
            f"bias {'none' if c.bias is None else c.bias.shape}"
        )
