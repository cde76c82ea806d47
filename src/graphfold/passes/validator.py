"""Shape and dtype admissibility of a matched Conv -> Mul pair."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from graphfold.ir import FOLDABLE_DTYPES, Conv, Graph, Initializer, Mul, Tensor

from .base import FusionInternalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FusionCandidate:
    conv: Conv
    mul: Mul
    weight: Initializer
    bias: Initializer | None
    scale: Initializer


def _constant(graph: Graph, t: Tensor) -> Initializer | None:
    if t.producer is not None:
        return None
    return graph.get_initializer(t.name)


def _scale_operand(conv: Conv, mul: Mul) -> Tensor:
    conv_out = conv.outputs[0]
    a, b = mul.inputs
    return b if a is conv_out else a


def _read_by_others(t: Tensor, conv: Conv) -> bool:
    return any(user is not conv for user in t.users)


def _reject(conv: Conv, mul: Mul, reason: str) -> None:
    logger.debug(f"Not folding {mul.name!r} into {conv.name!r}: {reason}")


def validate(graph: Graph, conv: Conv, mul: Mul) -> FusionCandidate | None:
    """Build a candidate if the pair's constants can be folded, else None.

    Raises:
        FusionInternalError: the bias slot names a constant that the graph
            does not hold.
    """

    weight = _constant(graph, conv.inputs[1])
    scale = _constant(graph, _scale_operand(conv, mul))
    if weight is None or scale is None:
        _reject(conv, mul, "weight or scale is not a constant")
        return None
    if weight.dtype not in FOLDABLE_DTYPES or scale.dtype not in FOLDABLE_DTYPES or weight.dtype != scale.dtype:
        _reject(conv, mul, f"dtypes {weight.dtype}/{scale.dtype}")
        return None

    if weight.rank < 4:
        _reject(conv, mul, f"weight rank {weight.rank} < 4")
        return None

    per_channel = scale.rank != 0
    if per_channel and not (scale.rank == weight.rank - 1 and scale.shape[0] == weight.shape[0]):
        _reject(conv, mul, f"scale shape {scale.shape} does not match weight shape {weight.shape}")
        return None

    if per_channel and any(dim != 1 for dim in scale.shape[1:]):
        _reject(conv, mul, f"scale shape {scale.shape} varies beyond the channel axis")
        return None

    # Initializers are replaced by name, so every reader would see the fold.
    if _read_by_others(conv.inputs[1], conv):
        _reject(conv, mul, f"weight {weight.name!r} is shared with another node")
        return None

    bias = None
    if len(conv.inputs) == 3:
        bias_value = conv.inputs[2]
        if not bias_value.is_initializer:
            _reject(conv, mul, f"bias {bias_value.name!r} is not a constant")
            return None
        bias = graph.get_initializer(bias_value.name)
        if bias is None:
            raise FusionInternalError(
                f"Conv {conv.name!r} declares constant bias {bias_value.name!r} "
                f"but graph {graph.name!r} has no such initializer"
            )
        if (
            bias.dtype not in FOLDABLE_DTYPES
            or bias.dtype != scale.dtype
            or bias.rank != 1
            or (per_channel and bias.shape[0] != scale.shape[0])
        ):
            _reject(conv, mul, f"bias {bias.dtype}{bias.shape} incompatible with scale {scale.dtype}{scale.shape}")
            return None
        if _read_by_others(bias_value, conv):
            _reject(conv, mul, f"bias {bias.name!r} is shared with another node")
            return None

    return FusionCandidate(conv=conv, mul=mul, weight=weight, bias=bias, scale=scale)
