import numpy as np
import pytest

from graphfold.ir import Conv, Graph, If, Initializer, Mul, float16, float32, float64
from graphfold.ir.dtypes import from_numpy
from graphfold.ir.op import IRValidationError, resolve_since_version


def test_conv_shape_inference() -> None:
	g = Graph(name="shape")
	x = g.input("x", (1, 3, 8, 8))
	w = g.initializer("w", np.zeros((4, 3, 3, 3), dtype=np.float32))
	y = g.conv(x, w, pads=[1, 1, 1, 1])
	assert y.shape == (1, 4, 8, 8)
	z = g.conv(y, g.initializer("w2", np.zeros((2, 4, 3, 3), dtype=np.float32)), strides=[2, 2])
	assert z.shape == (1, 2, 3, 3)
	assert len(g.ops) == 2


def test_mul_broadcasts_per_channel_scale() -> None:
	g = Graph(name="elemwise")
	x = g.input("x", (1, 4, 5, 5))
	s = g.initializer("s", np.ones((4, 1, 1), dtype=np.float32))
	y = g.mul(x, s)
	assert y.shape == (1, 4, 5, 5)
	assert y.dtype == float32


def test_mul_rejects_incompatible_shapes() -> None:
	g = Graph(name="bad")
	x = g.input("x", (1, 4, 5, 5))
	s = g.initializer("s", np.ones((3, 1, 1), dtype=np.float32))
	with pytest.raises(IRValidationError):
		g.mul(x, s)


def test_cannot_mix_tensors_from_different_graphs() -> None:
	g1 = Graph(name="g1")
	g2 = Graph(name="g2")

	a = g1.input("a", (1, 1, 4, 4))
	b = g2.initializer("b", np.ones((1, 1, 1, 1), dtype=np.float32))

	with pytest.raises(IRValidationError):
		_ = g1.conv(a, b)


def test_duplicate_tensor_name_rejected() -> None:
	g = Graph()
	g.input("x", (1,))
	with pytest.raises(IRValidationError):
		g.initializer("x", np.ones(1, dtype=np.float32))


def test_since_version_follows_opset() -> None:
	assert resolve_since_version("Mul", 14) == 14
	assert resolve_since_version("Mul", 12) == 7
	assert resolve_since_version("Conv", 10) == 1
	assert resolve_since_version("Conv", 17) == 11

	g = Graph(opset=6)
	x = g.input("x", (1, 1))
	y = g.mul(x, x)
	assert y.producer.schema == ("Mul", 6, "")


def test_edge_queries_and_node_ids() -> None:
	g = Graph()
	x = g.input("x", (1, 1, 4, 4))
	w = g.initializer("w", np.ones((2, 1, 1, 1), dtype=np.float32))
	s = g.initializer("s", np.ones((2, 1, 1), dtype=np.float32))
	y = g.conv(x, w, name="conv")
	z = g.mul(y, s, name="mul")
	r = g.relu(z, name="relu")
	g.mark_output(r)

	conv, mul, relu = g.ops
	assert [op.index for op in g.ops] == [0, 1, 2]
	assert isinstance(conv, Conv) and isinstance(mul, Mul)
	assert g.output_edge_count(conv) == 1
	assert g.input_edge_count(conv) == 0
	assert g.input_edge_count(mul) == 1
	assert g.consumers(y) == [mul.index]
	assert g.node_outputs_in_graph_outputs(relu)
	assert not g.node_outputs_in_graph_outputs(mul)
	assert g.node(mul.index) is mul
	assert g.node(42) is None


def test_remove_node_drops_edges() -> None:
	g = Graph()
	x = g.input("x", (1, 2))
	y = g.relu(x, name="r1")
	_ = g.relu(y, name="r2")

	r1, r2 = g.ops
	g.remove_node(r2.index)
	assert g.node(r2.index) is None
	assert y.users == []
	assert r2.outputs[0].name not in g.tensors

	with pytest.raises(IRValidationError):
		g.remove_node(r2.index)

	# Ids are never handed out twice.
	z = g.relu(y, name="r3")
	assert z.producer.index == 2


def test_replace_initializer_keeps_name_and_type() -> None:
	g = Graph()
	g.initializer("w", np.arange(4, dtype=np.float32))
	new = g.get_initializer("w").with_data(np.full(4, 7, dtype=np.float32))
	g.replace_initializer(new)
	assert g.get_initializer("w") is new

	other = Initializer.from_array("w", np.zeros(4, dtype=np.float64))
	assert other.dtype == float64
	with pytest.raises(IRValidationError):
		g.replace_initializer(other)


def test_if_collects_branch_outputs() -> None:
	then_g = Graph(name="then")
	a = then_g.input("a", (1, 2))
	then_g.mark_output(then_g.relu(a))
	else_g = Graph(name="else")
	b = else_g.input("b", (1, 2))
	else_g.mark_output(b)

	g = Graph()
	cond = g.input("cond", (1,))
	(out,) = g.if_(cond, then_g, else_g, output_names=["out"])
	op = out.producer
	assert isinstance(op, If)
	assert op.subgraphs() == [then_g, else_g]
	assert out.name == "out" and out.shape == (1, 2)
	assert "then" in g.summary()


def test_from_numpy_rejects_unsupported_element_types() -> None:
	assert from_numpy(np.float16) == float16
	assert from_numpy(np.dtype("int32")).itemsize == 4
	with pytest.raises(ValueError):
		from_numpy(np.int64)
	with pytest.raises(ValueError):
		Initializer.from_array("w", np.arange(3, dtype=np.int64))
