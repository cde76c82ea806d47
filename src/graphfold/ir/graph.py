from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Sequence

import numpy as np

from .dtypes import DType, float32
from .initializer import Initializer
from .op import DEFAULT_PROVIDER, Add, Conv, If, IRValidationError, Loop, Mul, Op, Relu, resolve_since_version
from .tensor import Tensor, as_shape


@dataclass(eq=False)
class Graph:
	"""A simple, explicit graph IR.

	Design choices:
	- Nodes live in an arena keyed by a stable integer id. Ids are handed out in
	  creation order and never reused, so iteration order is topological as
	  long as the graph is built forward.
	- Tensors know their producer and users (needed for pattern matching).
	- Constants are `Initializer`s in `initializers`, looked up by tensor name.
	"""

	name: str = "graph"
	opset: int = 14
	nodes: dict[int, Op] = field(default_factory=dict)
	tensors: dict[str, Tensor] = field(default_factory=dict)
	inputs: list[Tensor] = field(default_factory=list)
	outputs: list[Tensor] = field(default_factory=list)
	initializers: dict[str, Initializer] = field(default_factory=dict)
	_next_index: int = 0
	_name_counters: dict[str, int] = field(default_factory=dict)

	def _fresh_name(self, prefix: str) -> str:
		while True:
			n = self._name_counters.get(prefix, 0) + 1
			self._name_counters[prefix] = n
			name = f"{prefix}{n}"
			if name not in self.tensors:
				return name

	def _new_tensor(self, *, name: str | None, shape: tuple[int, ...], dtype: DType) -> Tensor:
		name = name or self._fresh_name("t")
		if name in self.tensors:
			raise IRValidationError(f"Tensor name {name!r} already used in graph {self.name!r}")
		t = Tensor(graph=self, name=name, shape=shape, dtype=dtype)
		self.tensors[name] = t
		return t

	# -- construction -------------------------------------------------------

	def input(self, name: str, shape: tuple[int, ...], dtype: DType = float32) -> Tensor:
		t = self._new_tensor(name=name, shape=as_shape(shape), dtype=dtype)
		self.inputs.append(t)
		return t

	def initializer(self, name: str, value: np.ndarray | float | int) -> Tensor:
		"""Register a constant and return the tensor that refers to it."""

		init = Initializer.from_array(name, value)
		t = self._new_tensor(name=name, shape=init.shape, dtype=init.dtype)
		t.is_initializer = True
		self.initializers[name] = init
		return t

	def mark_output(self, *tensors: Tensor) -> None:
		for t in tensors:
			if t.graph is not self:
				raise IRValidationError(f"Tensor {t.name!r} does not belong to graph {self.name!r}")
			self.outputs.append(t)

	def add_node(self, op: Op, *, output_names: Sequence[str | None] = ()) -> list[Tensor]:
		for t in op.inputs:
			if t.graph is not self:
				raise IRValidationError(
					f"{op.op_type} {op.name!r}: input {t.name!r} belongs to graph {t.graph.name!r}, "
					f"not {self.name!r}"
				)

		specs = op.infer_outputs()
		names = list(output_names) + [None] * (len(specs) - len(output_names))
		outs = []
		for (shape, dtype), out_name in zip(specs, names):
			out = self._new_tensor(name=out_name, shape=shape, dtype=dtype)
			out.producer = op
			outs.append(out)
		op.outputs = outs

		for t in op.inputs:
			t.add_user(op)
		op.index = self._next_index
		self._next_index += 1
		self.nodes[op.index] = op
		return outs

	def _versioned(self, op_type: str) -> int:
		return resolve_since_version(op_type, self.opset)

	def conv(
		self,
		x: Tensor,
		w: Tensor,
		b: Tensor | None = None,
		*,
		name: str | None = None,
		output_name: str | None = None,
		provider: str = DEFAULT_PROVIDER,
		**attrs: object,
	) -> Tensor:
		inputs = [x, w] if b is None else [x, w, b]
		op = Conv(
			name=name or self._fresh_name("conv"),
			inputs=inputs,
			attrs=dict(attrs),
			since_version=self._versioned("Conv"),
			execution_provider=provider,
		)
		return self.add_node(op, output_names=[output_name])[0]

	def mul(
		self,
		a: Tensor,
		b: Tensor,
		*,
		name: str | None = None,
		output_name: str | None = None,
		provider: str = DEFAULT_PROVIDER,
	) -> Tensor:
		op = Mul(
			name=name or self._fresh_name("mul"),
			inputs=[a, b],
			since_version=self._versioned("Mul"),
			execution_provider=provider,
		)
		return self.add_node(op, output_names=[output_name])[0]

	def add(self, a: Tensor, b: Tensor, *, name: str | None = None, output_name: str | None = None) -> Tensor:
		op = Add(name=name or self._fresh_name("add"), inputs=[a, b], since_version=self._versioned("Add"))
		return self.add_node(op, output_names=[output_name])[0]

	def relu(self, x: Tensor, *, name: str | None = None, output_name: str | None = None) -> Tensor:
		op = Relu(name=name or self._fresh_name("relu"), inputs=[x], since_version=self._versioned("Relu"))
		return self.add_node(op, output_names=[output_name])[0]

	def if_(
		self,
		cond: Tensor,
		then_branch: Graph,
		else_branch: Graph,
		*,
		name: str | None = None,
		output_names: Sequence[str | None] = (),
	) -> list[Tensor]:
		op = If(
			name=name or self._fresh_name("if"),
			inputs=[cond],
			since_version=self._versioned("If"),
			then_branch=then_branch,
			else_branch=else_branch,
		)
		return self.add_node(op, output_names=output_names)

	def loop(
		self,
		trip_count: Tensor,
		cond: Tensor,
		carried: Sequence[Tensor],
		body: Graph,
		*,
		name: str | None = None,
		output_names: Sequence[str | None] = (),
	) -> list[Tensor]:
		op = Loop(
			name=name or self._fresh_name("loop"),
			inputs=[trip_count, cond, *carried],
			since_version=self._versioned("Loop"),
			body=body,
		)
		return self.add_node(op, output_names=output_names)

	# -- queries ------------------------------------------------------------

	@property
	def ops(self) -> list[Op]:
		return list(self.nodes.values())

	def node(self, index: int) -> Op | None:
		return self.nodes.get(index)

	def iter_nodes(self) -> Iterator[Op]:
		"""Iterate over a snapshot of the node ids, skipping nodes removed meanwhile."""

		for index in list(self.nodes):
			op = self.nodes.get(index)
			if op is not None:
				yield op

	def consumers(self, t: Tensor) -> list[int]:
		"""Ids of the distinct nodes reading `t`, in first-use order."""

		seen: list[int] = []
		for user in t.users:
			if user.index not in seen:
				seen.append(user.index)
		return seen

	def output_edge_count(self, op: Op) -> int:
		"""Number of (consumer, input slot) edges leaving `op`."""

		return sum(len(out.users) for out in op.outputs)

	def input_edge_count(self, op: Op) -> int:
		"""Number of inputs of `op` that are produced by another node."""

		return sum(1 for t in op.inputs if t.producer is not None)

	def is_graph_output(self, t: Tensor) -> bool:
		return any(o is t for o in self.outputs)

	def node_outputs_in_graph_outputs(self, op: Op) -> bool:
		return any(self.is_graph_output(out) for out in op.outputs)

	def get_initializer(self, name: str) -> Initializer | None:
		return self.initializers.get(name)

	# -- mutation -----------------------------------------------------------

	def add_initializer(self, init: Initializer) -> None:
		if init.name in self.initializers:
			raise IRValidationError(f"Initializer {init.name!r} already exists in graph {self.name!r}")
		self.initializers[init.name] = init

	def remove_initializer(self, name: str) -> None:
		if self.initializers.pop(name, None) is None:
			raise IRValidationError(f"No initializer named {name!r} in graph {self.name!r}")

	def replace_initializer(self, init: Initializer) -> None:
		"""Swap the constant stored under `init.name`; references by name stay valid."""

		old = self.initializers.get(init.name)
		if old is not None and (old.shape != init.shape or old.dtype != init.dtype):
			raise IRValidationError(
				f"Replacement for {init.name!r} changes its type: "
				f"{old.dtype}{old.shape} -> {init.dtype}{init.shape}"
			)
		self.remove_initializer(init.name)
		self.add_initializer(init)

	def remove_node(self, index: int) -> None:
		"""Remove a node and its edges. Outputs nobody reads any more are dropped."""

		op = self.nodes.pop(index, None)
		if op is None:
			raise IRValidationError(f"No node with id {index} in graph {self.name!r}")
		for t in op.inputs:
			t.remove_user(op)
		for out in op.outputs:
			out.producer = None
			if not out.users and not self.is_graph_output(out):
				self.tensors.pop(out.name, None)

	def summary(self) -> str:
		lines: list[str] = [
			f"Graph(name={self.name!r}, opset={self.opset}, nodes={len(self.nodes)}, "
			f"initializers={len(self.initializers)})"
		]
		for op in self.nodes.values():
			ins = ", ".join(f"{t.name}:{t.shape}" for t in op.inputs)
			outs = ", ".join(f"{t.name}:{t.shape}" for t in op.outputs)
			lines.append(f"- [{op.index}] {op.name}: {op.op_type}-{op.since_version}({ins}) -> {outs}")
			for sub in op.subgraphs():
				lines.extend("    " + line for line in sub.summary().splitlines())
		return "\n".join(lines)
