from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from .dtypes import DType

if TYPE_CHECKING:
	from .graph import Graph
	from .op import Op


Shape = tuple[int, ...]


@dataclass(slots=True, eq=False)
class Tensor:
	"""A value flowing along the graph's edges.

	Think of a Tensor as an SSA value: it has a single producer op (or None for
	graph inputs and initializers) and a list of ops that consume it. An op that
	reads the same tensor through two input slots appears twice in `users`.
	"""

	graph: Graph
	name: str
	shape: Shape
	dtype: DType
	producer: Op | None = None
	users: list[Op] = field(default_factory=list)
	is_initializer: bool = False

	def add_user(self, op: Op) -> None:
		self.users.append(op)

	def remove_user(self, op: Op) -> None:
		self.users = [u for u in self.users if u is not op]

	@property
	def rank(self) -> int:
		return len(self.shape)

	@property
	def numel(self) -> int:
		n = 1
		for dim in self.shape:
			n *= dim
		return n

	def __repr__(self) -> str:  # pragma: no cover
		return f"Tensor(name={self.name!r}, shape={self.shape}, dtype={self.dtype})"


def as_shape(dims: Iterable[int]) -> Shape:
	return tuple(int(d) for d in dims)
