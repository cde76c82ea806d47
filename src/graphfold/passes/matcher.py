"""Structural matching of the Conv -> Mul motif."""

from __future__ import annotations

from typing import AbstractSet

from graphfold.ir import Conv, Graph, Mul, Op, OpSchema

CONV_SCHEMAS = frozenset({OpSchema("Conv", 1), OpSchema("Conv", 11)})
MUL_SCHEMAS = frozenset({OpSchema("Mul", 7), OpSchema("Mul", 13), OpSchema("Mul", 14)})


def is_supported_schema(op: Op, schemas: AbstractSet[OpSchema]) -> bool:
    return op.schema in schemas


def is_supported_provider(op: Op, providers: AbstractSet[str]) -> bool:
    return not providers or op.execution_provider in providers


def match_producer(graph: Graph, op: Op, providers: AbstractSet[str]) -> bool:
    return (
        isinstance(op, Conv)
        and is_supported_schema(op, CONV_SCHEMAS)
        and is_supported_provider(op, providers)
        and graph.output_edge_count(op) == 1
        and not graph.node_outputs_in_graph_outputs(op)
    )


def match_consumer(graph: Graph, producer: Op) -> Mul | None:
    """Return the Mul that can absorb `producer`, if its only consumer qualifies."""

    (index,) = graph.consumers(producer.outputs[0])
    consumer = graph.node(index)
    if (
        not isinstance(consumer, Mul)
        or not is_supported_schema(consumer, MUL_SCHEMAS)
        or graph.input_edge_count(consumer) != 1
        or graph.node_outputs_in_graph_outputs(consumer)
        or consumer.execution_provider != producer.execution_provider
    ):
        return None
    return consumer


def find_candidate(graph: Graph, op: Op, providers: AbstractSet[str]) -> tuple[Conv, Mul] | None:
    if not match_producer(graph, op, providers):
        return None
    mul = match_consumer(graph, op)
    if mul is None:
        return None
    return op, mul
