from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from .dtypes import DType

if TYPE_CHECKING:
	from .graph import Graph
	from .tensor import Shape, Tensor


DEFAULT_PROVIDER = "CPUExecutionProvider"
ONNX_DOMAIN = ""


class IRValidationError(ValueError):
	pass


class OpSchema(NamedTuple):
	"""Type tag of a node: operator kind, since-version and domain."""

	op_type: str
	since_version: int
	domain: str = ONNX_DOMAIN


# Versions at which each operator's ONNX definition changed. A node built for
# a given opset carries the largest entry not above it.
SINCE_VERSIONS: dict[str, tuple[int, ...]] = {
	"Conv": (1, 11),
	"Mul": (1, 6, 7, 13, 14),
	"Add": (1, 6, 7, 13, 14),
	"Relu": (1, 6, 13, 14),
	"If": (1, 11, 13, 16),
	"Loop": (1, 11, 13, 16),
}


def resolve_since_version(op_type: str, opset: int) -> int:
	versions = [v for v in SINCE_VERSIONS[op_type] if v <= opset]
	if not versions:
		raise IRValidationError(f"{op_type} is not defined at opset {opset}")
	return versions[-1]


@dataclass(slots=True, eq=False)
class Op:
	"""Base class for IR operations.

	`index` is the node's stable id inside its graph's arena; it is assigned
	when the graph adds the node and never reused. `outputs` are created by the
	graph from `infer_outputs()`.
	"""

	name: str
	inputs: list[Tensor]
	attrs: dict[str, object] = field(default_factory=dict)
	outputs: list[Tensor] = field(default_factory=list)
	since_version: int = 1
	domain: str = ONNX_DOMAIN
	execution_provider: str = DEFAULT_PROVIDER
	index: int = -1

	@property
	def op_type(self) -> str:
		return self.__class__.__name__

	@property
	def schema(self) -> OpSchema:
		return OpSchema(self.op_type, self.since_version, self.domain)

	def subgraphs(self) -> list[Graph]:
		return []

	def infer_outputs(self) -> list[tuple[Shape, DType]]:
		raise NotImplementedError


def _broadcast(a: Tensor, b: Tensor, op_type: str) -> tuple[Shape, DType]:
	if a.dtype != b.dtype:
		raise IRValidationError(f"{op_type} dtype mismatch: {a.dtype} != {b.dtype}")
	try:
		shape = np.broadcast_shapes(a.shape, b.shape)
	except ValueError:
		raise IRValidationError(f"{op_type} cannot broadcast {a.shape} with {b.shape}") from None
	return tuple(shape), a.dtype


@dataclass(slots=True, eq=False)
class Conv(Op):
	"""2-D or N-D convolution: X [N,C,*spatial], W [M,C/group,*kernel], optional B [M]."""

	def infer_outputs(self) -> list[tuple[Shape, DType]]:
		if len(self.inputs) not in (2, 3):
			raise IRValidationError("Conv expects 2 or 3 inputs")
		x, w = self.inputs[0], self.inputs[1]
		if x.rank < 3 or w.rank != x.rank:
			raise IRValidationError(f"Conv rank mismatch: X{x.shape} W{w.shape}")
		if x.dtype != w.dtype:
			raise IRValidationError("Conv dtype mismatch")
		group = int(self.attrs.get("group", 1))
		if x.shape[1] != w.shape[1] * group:
			raise IRValidationError(f"Conv channel mismatch: X{x.shape} W{w.shape} group={group}")
		if len(self.inputs) == 3:
			b = self.inputs[2]
			if b.shape != (w.shape[0],):
				raise IRValidationError(f"Conv bias must have shape ({w.shape[0]},), got {b.shape}")

		spatial = x.rank - 2
		strides = self.attrs.get("strides", [1] * spatial)
		dilations = self.attrs.get("dilations", [1] * spatial)
		pads = self.attrs.get("pads", [0] * (2 * spatial))
		out_spatial = []
		for i in range(spatial):
			kernel = (w.shape[2 + i] - 1) * dilations[i] + 1
			size = x.shape[2 + i] + pads[i] + pads[i + spatial] - kernel
			if size < 0:
				raise IRValidationError(f"Conv kernel larger than padded input along axis {2 + i}")
			out_spatial.append(size // strides[i] + 1)
		return [((x.shape[0], w.shape[0], *out_spatial), x.dtype)]


@dataclass(slots=True, eq=False)
class Mul(Op):
	"""Elementwise multiply with numpy-style broadcasting."""

	def infer_outputs(self) -> list[tuple[Shape, DType]]:
		if len(self.inputs) != 2:
			raise IRValidationError("Mul expects exactly 2 inputs")
		return [_broadcast(self.inputs[0], self.inputs[1], "Mul")]


@dataclass(slots=True, eq=False)
class Add(Op):
	"""Elementwise add with numpy-style broadcasting."""

	def infer_outputs(self) -> list[tuple[Shape, DType]]:
		if len(self.inputs) != 2:
			raise IRValidationError("Add expects exactly 2 inputs")
		return [_broadcast(self.inputs[0], self.inputs[1], "Add")]


@dataclass(slots=True, eq=False)
class Relu(Op):
	"""Elementwise ReLU: output shape and dtype equal the input's."""

	def infer_outputs(self) -> list[tuple[Shape, DType]]:
		if len(self.inputs) != 1:
			raise IRValidationError("Relu expects exactly 1 input")
		x = self.inputs[0]
		return [(x.shape, x.dtype)]


@dataclass(slots=True, eq=False)
class If(Op):
	"""Conditional: runs one of two branch graphs with matching outputs."""

	then_branch: Graph | None = None
	else_branch: Graph | None = None

	def subgraphs(self) -> list[Graph]:
		return [g for g in (self.then_branch, self.else_branch) if g is not None]

	def infer_outputs(self) -> list[tuple[Shape, DType]]:
		if len(self.inputs) != 1 or self.inputs[0].numel != 1:
			raise IRValidationError("If expects a single scalar condition")
		if self.then_branch is None or self.else_branch is None:
			raise IRValidationError("If needs both branches")
		then_specs = [(t.shape, t.dtype) for t in self.then_branch.outputs]
		else_specs = [(t.shape, t.dtype) for t in self.else_branch.outputs]
		if then_specs != else_specs:
			raise IRValidationError("If branches must produce matching outputs")
		return then_specs


@dataclass(slots=True, eq=False)
class Loop(Op):
	"""Loop over a body graph; the loop-carried values map 1:1 onto outputs."""

	body: Graph | None = None

	def subgraphs(self) -> list[Graph]:
		return [self.body] if self.body is not None else []

	def infer_outputs(self) -> list[tuple[Shape, DType]]:
		if self.body is None:
			raise IRValidationError("Loop needs a body graph")
		# Body outputs: condition first, then one per loop-carried input.
		carried = self.inputs[2:]
		body_outs = self.body.outputs[1:]
		if len(body_outs) != len(carried):
			raise IRValidationError(
				f"Loop body yields {len(body_outs)} carried values, expected {len(carried)}"
			)
		return [(t.shape, t.dtype) for t in carried]
