"""Constant tensors stored on a graph, and the arithmetic used to fold them.

An `Initializer` keeps its values as a flat, row-major numpy buffer next to the
logical shape. The arithmetic helpers below never touch their operands: they
build a fresh buffer and return a new `Initializer` carrying the first
operand's name, shape and dtype, so a replaced constant can be swapped into the
graph under its old name.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .dtypes import DType, from_numpy
from .tensor import Shape, as_shape


@dataclass(frozen=True, slots=True, eq=False)
class Initializer:
	name: str
	dtype: DType
	shape: Shape
	data: np.ndarray

	def __post_init__(self) -> None:
		expected = 1
		for dim in self.shape:
			expected *= dim
		if self.data.ndim != 1 or self.data.size != expected:
			raise ValueError(
				f"Initializer {self.name!r}: buffer of {self.data.size} elements "
				f"does not match shape {self.shape}"
			)
		if self.data.dtype != self.dtype.numpy:
			raise ValueError(
				f"Initializer {self.name!r}: buffer dtype {self.data.dtype} != {self.dtype}"
			)

	@classmethod
	def from_array(cls, name: str, array: np.ndarray | float | int) -> Initializer:
		arr = np.asarray(array)
		data = np.ascontiguousarray(arr).reshape(-1).copy()
		return cls(name=name, dtype=from_numpy(arr.dtype), shape=as_shape(arr.shape), data=data)

	@property
	def rank(self) -> int:
		return len(self.shape)

	@property
	def numel(self) -> int:
		return int(self.data.size)

	def to_array(self) -> np.ndarray:
		return self.data.reshape(self.shape).copy()

	def with_data(self, data: np.ndarray) -> Initializer:
		return Initializer(name=self.name, dtype=self.dtype, shape=self.shape, data=data)


def scale_along_axis(a: Initializer, b: Initializer, axis: int) -> Initializer:
	"""Multiply `a` by per-slice factors taken from `b` along `axis`.

	If `b` holds a single value every element of `a` is multiplied by it.
	Otherwise `b` must hold exactly `a.shape[axis]` values and every element
	whose coordinate along `axis` is *i* is multiplied by `b[i]`, whatever the
	remaining (unit) dimensions of `b` are.
	"""

	if not 0 <= axis < a.rank:
		raise ValueError(f"axis {axis} out of range for rank-{a.rank} tensor {a.name!r}")

	factors = b.data.astype(a.dtype.numpy, copy=False)
	if b.numel == 1:
		return a.with_data(a.data * factors[0])

	if b.numel != a.shape[axis]:
		raise ValueError(
			f"Cannot scale {a.name!r} {a.shape} along axis {axis} by "
			f"{b.numel} factors from {b.name!r}"
		)

	broadcast_shape = [1] * a.rank
	broadcast_shape[axis] = b.numel
	scaled = a.data.reshape(a.shape) * factors.reshape(broadcast_shape)
	return a.with_data(np.ascontiguousarray(scaled).reshape(-1))


def multiply(a: Initializer, b: Initializer) -> Initializer:
	"""Elementwise `a * b`, with `b` broadcast onto `a`'s shape."""

	try:
		out_shape = np.broadcast_shapes(a.shape, b.shape)
	except ValueError:
		out_shape = None
	if out_shape != a.shape:
		raise ValueError(f"Cannot broadcast {b.name!r} {b.shape} onto {a.name!r} {a.shape}")

	rhs = b.data.astype(a.dtype.numpy, copy=False).reshape(b.shape)
	product = a.data.reshape(a.shape) * rhs
	return a.with_data(np.ascontiguousarray(product).reshape(-1))
