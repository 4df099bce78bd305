#!/usr/bin/env python3
import argparse
import json
import re
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

TELEMETRY_PATTERN = re.compile(r"turn_telemetry=(\{.*\})")


def _iter_lines(paths: List[str]) -> Iterable[str]:
    if not paths:
        for line in sys.stdin:
            yield line.rstrip("\n")
        return
    for path in paths:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                yield line.rstrip("\n")


def parse_payload(line: str) -> Optional[Dict[str, Any]]:
    match = TELEMETRY_PATTERN.search(line)
    if not match:
        return None
    try:
        value = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def _rate(part: int, whole: int) -> float:
    return round(part / whole, 4) if whole else 0.0


def build_report(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    outcome_counts: Counter[str] = Counter()
    transition_counts: Counter[str] = Counter()
    strategy_counts: Counter[str] = Counter()
    rule_counts: Counter[str] = Counter()
    failure_counts: Counter[str] = Counter()

    match_attempts = 0
    match_misses = 0
    for row in rows:
        outcome_counts[str(row.get("outcome", "unknown"))] += 1
        transition_counts[f"{row.get('stage_before')}->{row.get('stage_after')}"] += 1
        if row.get("rule"):
            rule_counts[str(row["rule"])] += 1
        if row.get("collaborator"):
            failure_counts[str(row["collaborator"])] += 1

        status = row.get("match_status")
        if status:
            match_attempts += 1
            if status == "matched":
                strategy_counts[str(row.get("strategy") or "unknown")] += 1
            else:
                match_misses += 1

    total = len(rows)
    return {
        "total_turns": total,
        "outcome_counts": dict(outcome_counts),
        "transitions_top10": dict(transition_counts.most_common(10)),
        "classifier_rules": dict(rule_counts),
        "match": {
            "attempts": match_attempts,
            "misses": match_misses,
            "miss_rate": _rate(match_misses, match_attempts),
            "strategies": dict(strategy_counts),
        },
        "failures": dict(failure_counts),
        "failure_rate": _rate(sum(failure_counts.values()), total),
    }


def print_human(report: Dict[str, Any]) -> None:
    print(f"Total turns: {report['total_turns']}")
    print(f"Failure rate: {report['failure_rate']:.2%}")
    print("Outcomes:")
    for outcome, count in sorted(report["outcome_counts"].items(), key=lambda x: x[1], reverse=True):
        print(f"  - {outcome}: {count}")
    match = report["match"]
    print(f"Species matching: attempts={match['attempts']} misses={match['misses']} miss_rate={match['miss_rate']:.2%}")
    for strategy, count in match["strategies"].items():
        print(f"  - {strategy}: {count}")
    print("Top stage transitions:")
    for transition, count in report["transitions_top10"].items():
        print(f"  - {transition}: {count}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Summarize wildlife finder turn_telemetry logs.")
    parser.add_argument("log_files", nargs="*", help="Log files to parse. If omitted, read stdin.")
    parser.add_argument("--json-out", default="", help="Optional path to write JSON summary.")
    args = parser.parse_args()

    rows: List[Dict[str, Any]] = []
    for line in _iter_lines(args.log_files):
        payload = parse_payload(line)
        if payload:
            rows.append(payload)

    report = build_report(rows)
    print_human(report)

    if args.json_out:
        path = Path(args.json_out)
        path.write_text(json.dumps(report, indent=2) + "\n", encoding="utf-8")
        print(f"Wrote report: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
