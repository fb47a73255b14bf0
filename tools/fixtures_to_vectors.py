#!/usr/bin/env python3
"""Convert escrow fixtures into client-consumable YAML vector suites.

Codec fixtures (datum, redeemer and output tag) become runnable vectors for
the conformance harness. Lifecycle and plan cases are engine-side behaviour;
they are exported for reference with `runnable: false`.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from escrow_engine.errors import ErrorCode  # noqa: E402
from yaml_dump import write_yaml  # noqa: E402

MAPPING = {
    "tagging": "codec/tagging",
    "instances": "state/instances",
    "lifecycle": "state/lifecycle",
    "scenarios": "plans/scenarios",
}

RUNNABLE_KINDS = {"datum", "redeemer", "tag"}


def map_dest(rel: Path) -> Path:
    if not rel.parts:
        return Path("unmapped")
    top = rel.parts[0]
    mapped = MAPPING.get(top)
    if not mapped:
        if rel.name.startswith("wire_"):
            return Path("codec") / rel.name
        return Path("unmapped") / rel
    return Path(mapped) / Path(*rel.parts[1:])


def _map_error_code(name: str | None) -> int:
    if not name:
        return int(ErrorCode.SUCCESS)
    try:
        return int(ErrorCode[name])
    except KeyError:
        return int(ErrorCode.UNKNOWN)


def _wire_vector(vec: dict[str, Any]) -> dict[str, Any]:
    kind = vec.get("kind", "constr")
    if kind == "datum":
        inputs = {"terms": vec["terms"]}
    elif kind == "redeemer":
        inputs = {"tag": vec["tag"]}
    else:
        inputs = {k: v for k, v in vec.items() if k not in ("name", "kind", "expected_hex")}
    entry: dict[str, Any] = {"name": vec["name"], "kind": kind}
    if kind not in RUNNABLE_KINDS:
        entry["runnable"] = False
    entry["input"] = inputs
    entry["expected"] = {"hex": vec["expected_hex"]}
    return entry


def _tag_vector(vec: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": vec["name"],
        "kind": "tag",
        "input": {"tx_id": vec["tx_id"], "output_index": vec["output_index"]},
        "expected": {"hex": vec["expected_tag"]},
    }


def _case_vector(case: dict[str, Any]) -> dict[str, Any]:
    expected = case.get("expected", {})
    entry: dict[str, Any] = {
        "name": case.get("name", ""),
        "kind": "plan" if "plan" in expected else "transition",
        "runnable": False,
        "input": {k: v for k, v in case.items() if k not in ("name", "expected")},
        "expected": {
            "success": bool(expected.get("ok", False)),
            "error_code": _map_error_code(expected.get("error")),
        },
    }
    post = expected.get("post_instance")
    if post:
        entry["expected"]["instance_digest"] = post.get("digest", "")
        entry["expected"]["post_instance"] = post
    if expected.get("plan"):
        entry["expected"]["plan"] = expected["plan"]
    return entry


def convert(data: dict[str, Any], rel: Path) -> list[dict[str, Any]]:
    if "vectors" in data:
        return [_wire_vector(v) for v in data["vectors"]]
    if "cases" in data:
        return [_case_vector(c) for c in data["cases"]]
    if rel.parts and rel.parts[0] == "tagging":
        return [_tag_vector(v) for v in data.get("test_vectors", [])]
    vectors = []
    for v in data.get("test_vectors", []):
        entry = dict(v)
        entry.setdefault("runnable", False)
        vectors.append(entry)
    return vectors


def main() -> None:
    parser = argparse.ArgumentParser(description="Convert fixtures to vectors")
    parser.add_argument("--fixtures", default=str(ROOT / "fixtures"))
    parser.add_argument("--vectors", default=str(ROOT / "vectors"))
    args = parser.parse_args()

    fixtures = Path(args.fixtures).resolve()
    vectors = Path(args.vectors).resolve()

    if not fixtures.exists():
        raise SystemExit(f"fixtures dir not found: {fixtures}")

    vectors.mkdir(parents=True, exist_ok=True)
    old_files = {p.resolve() for p in vectors.rglob("*.yaml")}
    written: set[Path] = set()

    count = 0
    for path in sorted(fixtures.rglob("*.json")):
        rel = path.relative_to(fixtures)
        data = json.loads(path.read_text())
        dest = (vectors / map_dest(rel)).with_suffix(".yaml")
        dest.parent.mkdir(parents=True, exist_ok=True)
        write_yaml(dest, {"test_vectors": convert(data, rel)})
        written.add(dest.resolve())
        count += 1

    # Remove stale generated suites that no longer have a fixtures source.
    removed = 0
    for old in sorted(old_files - written):
        old.unlink()
        removed += 1
    for d in sorted(vectors.rglob("*"), reverse=True):
        if d.is_dir() and not any(d.iterdir()):
            d.rmdir()

    print(f"Written {count} vector files into {vectors}")
    if removed:
        print(f"Removed {removed} stale files")


if __name__ == "__main__":
    main()
