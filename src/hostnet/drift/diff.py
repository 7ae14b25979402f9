from __future__ import annotations

from typing import Any


def diff_state(expected: dict[str, Any], actual: dict[str, Any], prefix: str = "") -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for key in sorted(set(expected) | set(actual)):
        path = f"{prefix}.{key}" if prefix else key
        if key not in actual:
            out.append({"path": path, "type": "missing", "expected": expected[key]})
            continue
        if key not in expected:
            out.append({"path": path, "type": "unexpected", "actual": actual[key]})
            continue
        want, have = expected[key], actual[key]
        if isinstance(want, dict) and isinstance(have, dict):
            out.extend(diff_state(want, have, path))
        elif want != have:
            out.append({"path": path, "type": "changed", "expected": want, "actual": have})
    return out
