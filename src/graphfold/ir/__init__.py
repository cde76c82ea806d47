from .dtypes import FOLDABLE_DTYPES, DType, float16, float32, float64, int32
from .graph import Graph
from .initializer import Initializer, multiply, scale_along_axis
from .op import DEFAULT_PROVIDER, Add, Conv, If, IRValidationError, Loop, Mul, Op, OpSchema, Relu
from .tensor import Tensor

__all__ = [
    "DType",
    "FOLDABLE_DTYPES",
    "float16",
    "float32",
    "float64",
    "int32",
    "Graph",
    "Tensor",
    "Initializer",
    "scale_along_axis",
    "multiply",
    "IRValidationError",
    "DEFAULT_PROVIDER",
    "Op",
    "OpSchema",
    "Conv",
    "Mul",
    "Add",
    "Relu",
    "If",
    "Loop",
]
