"""
Evaluation harness -- runs eval_questions.jsonl through the mock
classifier and function selector and generates
analytics/reports/eval_report.md.

Checks:
  - Classification    (label matches expected, given optional history)
  - Function choice   (selected domain function matches expected)
  - Table choice      (validated request targets the expected table)
  - Rejection         (off-topic questions produce no function call)
  - Latency           (routing ms; no database or model is involved)
"""
from __future__ import annotations

import datetime
import json
import sys
import time
from pathlib import Path
from typing import Any

EVAL_PATH = Path(__file__).resolve().parent / "eval_questions.jsonl"
REPORT_PATH = Path(__file__).resolve().parents[1] / "reports" / "eval_report.md"


def _load_questions() -> list[dict[str, Any]]:
    lines = EVAL_PATH.read_text().splitlines()
    return [json.loads(line) for line in lines if line.strip()]


def _run_one(q: dict[str, Any]) -> dict[str, Any]:
    """Route a single question through the mock pipeline."""
    from lifedash.assistant.classifier import classify
    from lifedash.assistant.conversation import ConversationTurn
    from lifedash.assistant.function_selector import select_function

    question = q["question"]
    history = [ConversationTurn(**t) for t in q.get("history", [])]
    should_succeed = q.get("should_succeed", True)

    t0 = time.perf_counter()
    label = None
    function_name = None
    table = None
    error = None
    try:
        label = classify(history, question, mode="mock").value
        if label != "FOLLOWUP":
            function_name, request = select_function(question, mode="mock")
            table = request.table
    except Exception as exc:
        error = f"{type(exc).__name__}: {exc}"
    latency = int((time.perf_counter() - t0) * 1000)

    type_ok = label == q.get("expected_type", "NEW_QUERY")
    function_ok = function_name == q.get("expected_function")
    table_ok = table == q.get("expected_table")

    if should_succeed:
        success = error is None and type_ok and function_ok and table_ok
    else:
        success = error is not None

    return {
        "question": question,
        "type": label,
        "function": function_name,
        "table": table,
        "error": error,
        "latency_ms": latency,
        "type_ok": type_ok,
        "function_ok": function_ok,
        "table_ok": table_ok,
        "rejected": error is not None,
        "success": success,
    }


def _rate(n: int, d: int) -> float:
    return (n / d * 100) if d else 0


def _generate_report(results: list[dict[str, Any]], questions: list[dict[str, Any]]) -> str:
    """Generate the Markdown eval report."""
    total = len(results)
    now = datetime.datetime.now().strftime("%Y-%m-%d %H:%M")

    valid = [r for r, q in zip(results, questions) if q.get("should_succeed", True)]
    data_valid = [r for r, q in zip(results, questions)
                  if q.get("should_succeed", True) and q.get("expected_type", "NEW_QUERY") != "FOLLOWUP"]
    rejected = [r for r, q in zip(results, questions) if not q.get("should_succeed", True)]

    successes = sum(1 for r in results if r["success"])
    type_correct = sum(1 for r in valid if r["type_ok"])
    fn_correct = sum(1 for r in data_valid if r["function_ok"])
    table_correct = sum(1 for r in data_valid if r["table_ok"])
    rejected_correct = sum(1 for r in rejected if r["rejected"])

    latencies = sorted(r["latency_ms"] for r in results)
    avg_lat = sum(latencies) / len(latencies) if latencies else 0
    p50_lat = latencies[len(latencies) // 2] if latencies else 0
    max_lat = latencies[-1] if latencies else 0

    lines: list[str] = []
    lines.append("# Routing Evaluation Report")
    lines.append("")
    lines.append(f"> Generated: {now}  |  Questions: **{total}**  |  Mode: `mock` (deterministic keyword router)")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|--------|-------|")
    lines.append(f"| Overall success rate | **{_rate(successes, total):.0f}%** ({successes}/{total}) |")
    lines.append(f"| Classification | **{_rate(type_correct, len(valid)):.0f}%** ({type_correct}/{len(valid)}) |")
    lines.append(f"| Function choice | **{_rate(fn_correct, len(data_valid)):.0f}%** ({fn_correct}/{len(data_valid)}) |")
    lines.append(f"| Table choice | **{_rate(table_correct, len(data_valid)):.0f}%** ({table_correct}/{len(data_valid)}) |")
    lines.append(f"| Off-topic rejected | **{_rate(rejected_correct, len(rejected)):.0f}%** ({rejected_correct}/{len(rejected)}) |")
    lines.append(f"| Latency mean / p50 / max (ms) | {avg_lat:.0f} / {p50_lat} / {max_lat} |")
    lines.append("")

    lines.append("## Per-Question Results")
    lines.append("")
    lines.append("| # | Question | Type | Function | Table | Pass |")
    lines.append("|---|----------|------|----------|-------|------|")
    for i, r in enumerate(results, 1):
        qtext = r["question"][:55] + ("..." if len(r["question"]) > 55 else "")
        lines.append(
            f"| {i} | {qtext} | {r['type'] or '--'} | {r['function'] or '--'} "
            f"| {r['table'] or '--'} | {'OK' if r['success'] else 'ERROR'} |"
        )
    lines.append("")

    failures = [(i, r) for i, r in enumerate(results, 1) if not r["success"]]
    lines.append("## Failures")
    lines.append("")
    if not failures:
        lines.append("None -- all questions routed correctly.")
    for i, r in failures:
        lines.append(f"- #{i} *{r['question']}*: type={r['type']} function={r['function']} "
                     f"table={r['table']} error=`{r['error']}`")
    lines.append("")
    return "\n".join(lines)


def run():
    if sys.platform == "win32":
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")  # type: ignore[attr-defined]

    questions = _load_questions()
    print(f"Loaded {len(questions)} eval questions.\n")

    results = []
    for i, q in enumerate(questions, 1):
        r = _run_one(q)
        status = "PASS" if r["success"] else "FAIL"
        print(f"  [{i:2d}/{len(questions)}] {status}  {r['question'][:60]:<60}  {r['latency_ms']:>4d}ms")
        results.append(r)

    REPORT_PATH.parent.mkdir(parents=True, exist_ok=True)
    REPORT_PATH.write_text(_generate_report(results, questions), encoding="utf-8")
    print(f"\nReport written to {REPORT_PATH}")

    total = len(results)
    successes = sum(1 for r in results if r["success"])
    print(f"\n{'='*50}")
    print(f"  Success: {successes}/{total} ({_rate(successes, total):.0f}%)")
    print(f"{'='*50}")


if __name__ == "__main__":
    run()
