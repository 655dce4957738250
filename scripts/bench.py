#!/usr/bin/env python3
"""Time perft divide across backends and write a CSV."""

from __future__ import annotations

import argparse
import csv
import sys
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from perftdiff.backends import EmbeddedBackend, ExecutableBackend, PerftBackend
from perftdiff.constants import START_FEN
from perftdiff.position import parse_fen
from perftdiff.uci import EngineBackend


KIWIPETE_FEN = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"


@dataclass(frozen=True)
class PositionCase:
    name: str
    fen: str


def _write_csv(path: Path, fieldnames: list[str], rows: list[dict[str, object]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)


def run_divide_bench(backend: PerftBackend, depths_by_case: dict[PositionCase, list[int]]) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for case, depths in depths_by_case.items():
        board = parse_fen(case.fen)
        for depth in depths:
            start = perf_counter()
            nodes = sum(count for _, count in backend.divide(board, depth))
            elapsed_ms = (perf_counter() - start) * 1000.0
            nps = int(nodes / max(elapsed_ms / 1000.0, 1e-9))
            rows.append(
                {
                    "position": case.name,
                    "backend": backend.name,
                    "depth": depth,
                    "nodes": nodes,
                    "elapsed_ms": round(elapsed_ms, 3),
                    "nps": nps,
                }
            )
    return rows


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Benchmark perft divide backends")
    parser.add_argument("--output", default=str(ROOT / "metrics" / "divide_metrics.csv"), help="CSV path")
    candidate = parser.add_mutually_exclusive_group()
    candidate.add_argument("--engine", type=Path, help="Persistent engine to benchmark as well")
    candidate.add_argument("--command", type=Path, help="One-shot executable to benchmark as well")
    parser.add_argument("--max-depth", type=int, default=3, help="Deepest divide to time")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    cases = [
        PositionCase("start", START_FEN),
        PositionCase("kiwipete", KIWIPETE_FEN),
    ]
    depths = list(range(1, args.max_depth + 1))
    depths_by_case = {
        cases[0]: depths,
        # Kiwipete branches far more; keep the default run short.
        cases[1]: depths[:-1] or depths,
    }

    backends: list[PerftBackend] = [EmbeddedBackend()]
    if args.engine is not None:
        backends.append(EngineBackend(args.engine))
    elif args.command is not None:
        backends.append(ExecutableBackend(args.command))

    rows: list[dict[str, object]] = []
    for backend in backends:
        with backend:
            rows.extend(run_divide_bench(backend, depths_by_case))

    output = Path(args.output)
    _write_csv(output, fieldnames=["position", "backend", "depth", "nodes", "elapsed_ms", "nps"], rows=rows)
    print(f"wrote {output}")


if __name__ == "__main__":
    main()
