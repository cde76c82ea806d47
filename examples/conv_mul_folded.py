from __future__ import annotations

import logging
import sys
from pathlib import Path

import numpy as np

repo_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(repo_root / "src"))

from graphfold.ir import Graph
from graphfold.passes import ConvMulFusion, apply_until_fixpoint


def build_conv_stack(channels: int = 8, depth: int = 3) -> Graph:
    rng = np.random.default_rng(0)
    g = Graph(name="conv_stack")
    h = g.input("x", (1, channels, 16, 16))
    for i in range(depth):
        w = g.initializer(f"w{i}", rng.standard_normal((channels, channels, 3, 3)).astype(np.float32))
        b = g.initializer(f"b{i}", rng.standard_normal(channels).astype(np.float32))
        s = g.initializer(f"s{i}", rng.uniform(0.5, 1.5, (channels, 1, 1)).astype(np.float32))
        h = g.conv(h, w, b, name=f"conv{i}", pads=[1, 1, 1, 1])
        h = g.mul(h, s, name=f"scale{i}")
        h = g.relu(h, name=f"relu{i}")
    g.mark_output(h)
    return g


def main() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    g = build_conv_stack()
    print(f"Original: {len(g.ops)} ops")
    print(g.summary())

    print("\nRunning ConvMulFusion...")
    steps = apply_until_fixpoint(ConvMulFusion(), g)
    print(f"Folded: {len(g.ops)} ops after {steps} modifying run(s)")
    print(g.summary())


if __name__ == "__main__":
    main()
