"""Generate BLAKE2b/BLAKE3 YAML vectors for the escrow hash assignments."""

from __future__ import annotations

from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from escrow_engine.crypto.hash_vectors import all_hash_vectors  # noqa: E402
from yaml_dump import write_yaml  # noqa: E402


def _prune(obj):  # drop None keys so clients can treat absent fields as unset
    if isinstance(obj, dict):
        return {k: _prune(v) for k, v in obj.items() if v is not None}
    if isinstance(obj, list):
        return [_prune(v) for v in obj]
    return obj


def _file_name(algorithm: str) -> str:
    return algorithm.lower().replace("-", "_") + ".yaml"


def main() -> None:
    out = ROOT / "vectors" / "crypto"
    out.mkdir(parents=True, exist_ok=True)

    for algorithm, suite in all_hash_vectors().items():
        write_yaml(out / _file_name(algorithm), _prune(suite))
        print(f"Wrote {algorithm} vectors")


if __name__ == "__main__":
    main()
