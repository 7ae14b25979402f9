from pathlib import Path


def _status_line(summary: dict) -> list[str]:
    counts = summary.get("counts_by_status", {})
    shown = ", ".join(f"{k}={v}" for k, v in counts.items() if v)
    return [f"- Exit code: {summary.get('exit_code', 1)}", f"- Status counts: {shown or 'none'}"]


def render_checks(payload: dict, title: str) -> str:
    lines = [f"# {title}", "", "## Summary"]
    lines.extend(_status_line(payload.get("summary", {})))
    lines.append("")
    lines.append("## Results")

    grouped: dict[str, list[dict]] = {}
    for item in payload.get("results", []):
        grouped.setdefault(item.get("phase", "other"), []).append(item)

    for phase, items in grouped.items():
        lines.append(f"### {phase}")
        for item in items:
            marker = f"{item['status']}/{item['severity']}" if item["status"] == "FAIL" else item["status"]
            lines.append(f"- **{marker}** `{item['name']}`: {item['message']}")
        lines.append("")
    return "\n".join(lines)


def render_deployment(payload: dict) -> str:
    lines = ["# hostnet deployment", "", "## Summary", f"- Status: {payload['status']}"]
    if payload.get("dry_run"):
        lines.append("- Dry run: no changes applied")
    if payload.get("snapshot_id"):
        lines.append(f"- Snapshot: `{payload['snapshot_id']}`")
    if payload.get("cause"):
        lines.append(f"- Cause: {payload['cause']}")
    lines.append(f"- States: {' -> '.join(payload.get('states', []))}")
    lines.append("")

    for label, key in (("Steps", "record"), ("Rescue steps", "rescue_record")):
        record = payload.get(key)
        if not record:
            continue
        lines.append(f"## {label}")
        for entry in record["entries"]:
            detail = f" ({entry['detail']})" if entry.get("detail") else ""
            lines.append(f"- `{entry['outcome']}` {entry['step']}{detail}")
        lines.append("")

    undo = payload.get("undo_plan")
    if undo:
        lines.append("## Manual undo")
        for step in undo["cleanup"] + undo["build"] + undo["activation"]:
            lines.append(f"- {step['kind']} {step['target']}")
        lines.append("")
    return "\n".join(lines)


def write_markdown_report(payload: dict, out_path: Path, title: str = "hostnet report") -> None:
    text = render_deployment(payload) if "status" in payload else render_checks(payload, title)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
