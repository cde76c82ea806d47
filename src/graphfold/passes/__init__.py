from .base import FusionInternalError, GraphTransformer, GraphTransformerError, apply_until_fixpoint
from .conv_mul_fusion import ConvMulFusion
from .matcher import CONV_SCHEMAS, MUL_SCHEMAS, find_candidate
from .validator import FusionCandidate, validate

__all__ = [
    "GraphTransformer",
    "GraphTransformerError",
    "FusionInternalError",
    "apply_until_fixpoint",
    "ConvMulFusion",
    "CONV_SCHEMAS",
    "MUL_SCHEMAS",
    "find_candidate",
    "FusionCandidate",
    "validate",
]
