#!/usr/bin/env python3
"""
Benchmark: RouterOS API wire codec and round trips

Measures latency and throughput for:
  1. Packing a sentence (length codec + word serialization)
  2. Reassembling a sentence from MTU sized chunks
  3. A tagged command round trip against the stand-in server over TCP

Usage:
  $ python benchmarks/bench_wire.py --runs 1000 --size 16384
"""
from __future__ import annotations

import argparse
import hashlib
import os
import time
from statistics import quantiles

from rich import box
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from rosapi import Connection, Sentence, SentenceReassembler, pack_sentence, run_server

MTU_CHUNK = 1460


# ---------------------------------------------------------------------------
# Utilities
# ---------------------------------------------------------------------------
def generate_payload_with_checksum(size: int) -> tuple[str, str]:
    # latin-1 keeps one character per byte
    payload = os.urandom(size).decode("latin-1")
    checksum = hashlib.sha256(payload.encode("latin-1")).hexdigest()
    return payload, checksum


def validate_response(original_checksum: str, response_payload: str, run_number: int) -> bool:
    response_checksum = hashlib.sha256(response_payload.encode("latin-1")).hexdigest()
    if response_checksum != original_checksum:
        print(f"❌ Run {run_number}: Checksum mismatch!")
        print(f"   Expected: {original_checksum}")
        print(f"   Got:      {response_checksum}")
        return False
    return True


def echo_handler(sentence: Sentence) -> list[Sentence]:
    return [Sentence.reply(data=sentence.attribute("data")), Sentence.done()]


# ---------------------------------------------------------------------------
# Benchmarks
# ---------------------------------------------------------------------------
def bench_pack(payload: str, checksum: str, runs: int) -> dict:
    latencies = []
    words = ["/bench/echo", f"=data={payload}", ".tag=1"]
    for _ in tqdm(range(runs), desc="Pack"):
        start = time.perf_counter()
        pack_sentence(words)
        latencies.append(time.perf_counter() - start)
    return {"latencies": latencies, "validation_errors": 0, "total_runs": runs}


def bench_reassemble(payload: str, checksum: str, runs: int) -> dict:
    latencies = []
    validation_errors = 0
    data = pack_sentence(["!re", f"=data={payload}", ".tag=1"])
    chunks = [data[i : i + MTU_CHUNK] for i in range(0, len(data), MTU_CHUNK)]
    for run_num in tqdm(range(runs), desc="Reassemble"):
        reassembler = SentenceReassembler()
        start = time.perf_counter()
        sentences = []
        for chunk in chunks:
            sentences.extend(reassembler.feed(chunk))
        latencies.append(time.perf_counter() - start)

        received = Sentence.from_words(sentences[0]).attribute("data")
        if not validate_response(checksum, received, run_num):
            validation_errors += 1
    return {"latencies": latencies, "validation_errors": validation_errors, "total_runs": runs}


def bench_roundtrip(payload: str, checksum: str, runs: int) -> dict:
    latencies = []
    validation_errors = 0
    replies: list[Sentence] = []
    with run_server(port=0, on_sentence=echo_handler) as server:
        conn = Connection(("admin", ""), on_sentence=replies.append)
        conn.connect(*server.address)
        if not conn.run_until(conn.is_logged_in, timeout=5.0):
            raise RuntimeError("Login to the stand-in server failed")
        try:
            for run_num in tqdm(range(runs), desc="Round trip"):
                replies.clear()
                start = time.perf_counter()
                tag = conn.send(Sentence(command="/bench/echo", attributes={"data": payload}))
                conn.run_until(lambda: any(r.command == "!done" and r.tag == tag for r in replies), timeout=5.0)
                latencies.append(time.perf_counter() - start)

                if not replies or not validate_response(checksum, replies[0].attribute("data"), run_num):
                    validation_errors += 1
        finally:
            conn.close(force=True)
    return {"latencies": latencies, "validation_errors": validation_errors, "total_runs": runs}


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------
UNITS = {
    "s": 1,
    "ms": 1e3,
    "us": 1e6,
    "ns": 1e9,
}


def summarise(
    latencies: list[float], size_bytes: int, validation_errors: int, total_runs: int, unit: str = "us"
) -> dict[str, float]:
    if len(latencies) < 2:
        return {"p50": float("nan"), "p95": float("nan"), "p99": float("nan"), "thr": 0.0, "success_rate": 0.0}
    lat = [t * UNITS[unit] for t in latencies]
    cuts = quantiles(lat, n=100)
    p50, p95, p99 = cuts[49], cuts[94], cuts[98]
    throughput = (size_bytes * len(latencies)) / sum(latencies) / (2**20)  # MiB/s
    success_rate = (total_runs - validation_errors) / total_runs * 100
    return {"p50": p50, "p95": p95, "p99": p99, "thr": throughput, "success_rate": success_rate}


def print_table(results: dict[str, dict[str, float]], unit: str = "us"):
    console = Console()
    table = Table(title="RouterOS API Wire Benchmark Results", box=box.SIMPLE_HEAVY)
    table.add_column("Stage")
    table.add_column(f"p50 ({unit}, ↓)")
    table.add_column(f"p95 ({unit}, ↓)")
    table.add_column(f"p99 ({unit}, ↓)")
    table.add_column("Throughput (MiB/s, ↑)")
    table.add_column("Success Rate (%)")
    for k, v in results.items():
        success_rate = v.get("success_rate", 100.0)
        success_color = "green" if success_rate == 100.0 else "red"
        table.add_row(
            k,
            f"{v['p50']:.2f}",
            f"{v['p95']:.2f}",
            f"{v['p99']:.2f}",
            f"{v['thr']:.1f}",
            f"[{success_color}]{success_rate:.1f}%[/{success_color}]",
        )
    console.print(table)


def main():
    parser = argparse.ArgumentParser(description="Benchmark the RouterOS API wire codec")
    parser.add_argument("--runs", type=int, default=100, help="Number of benchmark runs")
    parser.add_argument("--size", type=int, default=1024, help="Payload size in bytes")
    parser.add_argument("--unit", choices=["us", "ms", "ns"], default="us", help="Latency unit")
    args = parser.parse_args()

    payload, checksum = generate_payload_with_checksum(args.size)
    print(f"Benchmarking {args.runs} runs with {args.size} byte payloads")

    results = {}
    for label, bench in (("Pack", bench_pack), ("Reassemble", bench_reassemble), ("Round trip", bench_roundtrip)):
        res = bench(payload, checksum, args.runs)
        results[label] = summarise(
            res["latencies"], args.size, res["validation_errors"], res["total_runs"], args.unit
        )

    print_table(results, args.unit)


if __name__ == "__main__":
    main()
