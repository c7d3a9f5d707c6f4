#!/usr/bin/env python3
"""
Dependency analysis across every package.json of a monorepo.

Reports dependencies pinned to more than one version, the most widely used
dependencies, and consolidation suggestions.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from codai_steward.reporting import atomic_write_text, dump_report, resolve_out_path, utc_now


REPORT_FILE = "dependency-analysis-report.json"
COMMON_DEPENDENCY_LIMIT = 20
EXTRACT_COMMON_CANDIDATES = 10
EXTRACT_COMMON_MIN_USERS = 5
SKIP_DIRS = {"node_modules"}


def find_package_files(project_dir: Path) -> list[Path]:
    out: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(project_dir):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS and not d.startswith("."))
        if "package.json" in filenames:
            out.append(Path(dirpath) / "package.json")
    return sorted(out)


def analyze_package(path: Path, project_dir: Path) -> tuple[dict[str, Any] | None, str | None]:
    rel = path.relative_to(project_dir).as_posix()
    try:
        pkg = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        return None, f"{rel}: {exc}"
    if not isinstance(pkg, dict):
        return None, f"{rel}: expected a JSON object"

    def section(key: str) -> dict[str, str]:
        value = pkg.get(key)
        if not isinstance(value, dict):
            return {}
        return {str(k): str(v) for k, v in value.items()}

    return {
        "path": rel,
        "name": pkg.get("name") if isinstance(pkg.get("name"), str) else path.parent.name,
        "version": pkg.get("version"),
        "dependencies": section("dependencies"),
        "devDependencies": section("devDependencies"),
        "peerDependencies": section("peerDependencies"),
    }, None


def find_version_conflicts(packages: list[dict[str, Any]]) -> dict[str, dict[str, list[dict[str, str]]]]:
    seen: dict[str, dict[str, list[dict[str, str]]]] = {}
    for pkg in packages:
        for kind, key in (("dependency", "dependencies"), ("devDependency", "devDependencies")):
            for dep, version in pkg[key].items():
                seen.setdefault(dep, {}).setdefault(version, []).append(
                    {"package": pkg["name"], "path": pkg["path"], "type": kind}
                )
    return {dep: versions for dep, versions in sorted(seen.items()) if len(versions) > 1}


def most_common_dependencies(packages: list[dict[str, Any]], limit: int = COMMON_DEPENDENCY_LIMIT) -> list[list[Any]]:
    counts: dict[str, int] = {}
    for pkg in packages:
        for dep in {**pkg["dependencies"], **pkg["devDependencies"]}:
            counts[dep] = counts.get(dep, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [[dep, count] for dep, count in ranked[:limit]]


def build_suggestions(
    conflicts: dict[str, dict[str, list[dict[str, str]]]],
    common: list[list[Any]],
) -> list[dict[str, Any]]:
    suggestions: list[dict[str, Any]] = []
    for dep, versions in conflicts.items():
        suggestions.append(
            {
                "type": "version_conflict",
                "dependency": dep,
                "versions": sorted(versions),
                "suggestion": f"Unify {dep} to a single version across all packages",
                "impact": "medium",
                "packages": sorted({u["package"] for users in versions.values() for u in users}),
            }
        )
    for dep, count in common[:EXTRACT_COMMON_CANDIDATES]:
        if count > EXTRACT_COMMON_MIN_USERS:
            suggestions.append(
                {
                    "type": "extract_common",
                    "dependency": dep,
                    "usage_count": count,
                    "suggestion": f"Consider moving {dep} to a shared package (used in {count} packages)",
                    "impact": "high",
                }
            )
    return suggestions


def compute_dependency_report(project_dir: Path) -> dict[str, Any]:
    packages: list[dict[str, Any]] = []
    unreadable: list[str] = []
    for path in find_package_files(project_dir):
        pkg, err = analyze_package(path, project_dir)
        if err is not None:
            unreadable.append(err)
            continue
        packages.append(pkg)

    conflicts = find_version_conflicts(packages)
    common = most_common_dependencies(packages)
    suggestions = build_suggestions(conflicts, common)
    return {
        "version": "v0",
        "run_at": utc_now(),
        "project_dir": str(project_dir),
        "summary": {
            "total_packages": len(packages),
            "version_conflicts": len(conflicts),
            "suggestions": len(suggestions),
            "unreadable": len(unreadable),
        },
        "packages": [{"name": p["name"], "path": p["path"], "version": p["version"]} for p in packages],
        "version_conflicts": conflicts,
        "common_dependencies": common,
        "suggestions": suggestions,
        "unreadable": unreadable,
    }


def render_text(report: dict[str, Any]) -> str:
    s = report["summary"]
    lines = [
        f"packages: {s['total_packages']}",
        f"version_conflicts: {s['version_conflicts']}",
    ]
    for dep, versions in report["version_conflicts"].items():
        lines.append(f"- {dep}: " + ", ".join(f"{v} ({len(users)})" for v, users in sorted(versions.items())))
    lines.append("common_dependencies:")
    for dep, count in report["common_dependencies"][:10]:
        lines.append(f"- {dep}: {count}")
    lines.append(f"suggestions: {s['suggestions']}")
    if report["unreadable"]:
        lines.append(f"unreadable: {len(report['unreadable'])}")
    return "\n".join(lines)


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description=__doc__)
    p.add_argument("--project-dir", required=True)
    p.add_argument("--format", choices=["text", "json"], default="text")
    p.add_argument("--report-file", default=REPORT_FILE, help=f"Report path, absolute or project-relative (default: {REPORT_FILE}).")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    project_dir = Path(args.project_dir).resolve()
    if not project_dir.is_dir():
        print(f"error: project dir not found: {project_dir}", file=sys.stderr)
        return 1
    report = compute_dependency_report(project_dir)
    out = resolve_out_path(project_dir, args.report_file)
    atomic_write_text(out, dump_report(report))
    if args.format == "json":
        print(json.dumps(report, indent=2, sort_keys=True))
    else:
        print(render_text(report))
        print(f"report: {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
