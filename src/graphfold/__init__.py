"""graphfold: a small dataflow graph IR and the Conv/Mul folding pass.

The IR models just what graph rewrites need: an arena of nodes with stable
ids, SSA tensors that know their producer and users, named constant
initializers and nested control-flow graphs.
"""

from .ir.dtypes import DType, float32
from .ir.graph import Graph
from .ir.initializer import Initializer
from .ir.op import IRValidationError
from .ir.tensor import Tensor
from .passes import ConvMulFusion, FusionInternalError

__all__ = [
    "DType",
    "float32",
    "Graph",
    "Initializer",
    "Tensor",
    "IRValidationError",
    "ConvMulFusion",
    "FusionInternalError",
]
