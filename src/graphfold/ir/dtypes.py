from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class DType:
	"""Scalar dtype for IR tensors and initializers."""

	name: str
	itemsize: int

	@property
	def numpy(self) -> np.dtype:
		return np.dtype(self.name)

	def __str__(self) -> str:  # pragma: no cover
		return self.name


float16 = DType("float16", 2)
float32 = DType("float32", 4)
float64 = DType("float64", 8)
int32 = DType("int32", 4)

_BY_NAME = {d.name: d for d in (float16, float32, float64, int32)}

# Element types a constant fold may rewrite.
FOLDABLE_DTYPES = frozenset({float16, float32, float64})


def from_numpy(dtype: np.dtype | type) -> DType:
	name = np.dtype(dtype).name
	try:
		return _BY_NAME[name]
	except KeyError:
		raise ValueError(f"Unsupported element type: {name}") from None
