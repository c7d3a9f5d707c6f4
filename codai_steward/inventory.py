"""
Ecosystem inventory: directory discovery, status classification and summaries.

Nothing here writes to disk. Records are plain dicts so they serialize
straight into reports.
"""

from __future__ import annotations

import json
import os
import re
from fnmatch import fnmatch
from pathlib import Path
from typing import Any

from codai_steward import gitops


STATUS_MISSING = "missing"
STATUS_EMPTY = "empty"
STATUS_MINIMAL = "minimal"
STATUS_PARTIAL = "partial"
STATUS_SCAFFOLDED = "scaffolded"
STATUS_CONTENT_RICH = "content-rich"
STATUS_SUBMODULE = "submodule"
STATUS_VALUES = [
    STATUS_MISSING,
    STATUS_EMPTY,
    STATUS_MINIMAL,
    STATUS_PARTIAL,
    STATUS_SCAFFOLDED,
    STATUS_CONTENT_RICH,
    STATUS_SUBMODULE,
]
READY_STATUSES = {STATUS_SCAFFOLDED, STATUS_CONTENT_RICH}

DEFAULT_MINIMAL_BELOW = 10
DEFAULT_CONTENT_RICH_ABOVE = 100
DEFAULT_ROOTS = ["apps", "services"]
IGNORE_FILE = ".stewardignore"


def normalize_rel_path(path: str) -> str:
    out = path.replace("\\", "/")
    while out.startswith("./"):
        out = out[2:]
    return out


def load_ignore_rules(project_dir: Path) -> list[tuple[str, bool]]:
    """
    Load .stewardignore patterns.
    Returns a list of (pattern, is_negated) with order preserved.
    """
    path = project_dir / IGNORE_FILE
    if not path.exists():
        return []

    rules: list[tuple[str, bool]] = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        is_negated = line.startswith("!")
        pattern = normalize_rel_path(line[1:] if is_negated else line)
        if not pattern:
            continue
        if pattern.endswith("/"):
            pattern = pattern.rstrip("/")
        rules.append((pattern.lstrip("/"), is_negated))
    return rules


def is_ignored(rel_path: str, rules: list[tuple[str, bool]]) -> bool:
    if not rules:
        return False
    path = normalize_rel_path(rel_path)
    ignored = False
    for pattern, is_negated in rules:
        if fnmatch(path, pattern) or fnmatch(path, f"{pattern}/**") or path.startswith(f"{pattern}/"):
            ignored = not is_negated
    return ignored


def read_json_object(path: Path) -> dict[str, Any] | None:
    """Return the parsed object, or None when the file is absent or malformed."""
    if not path.is_file():
        return None
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
    return obj if isinstance(obj, dict) else None


def read_submodule_paths(project_dir: Path) -> set[str]:
    path = project_dir / ".gitmodules"
    if not path.exists():
        return set()
    out: set[str] = set()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return set()
    for raw in text.splitlines():
        m = re.match(r"^\s*path\s*=\s*(.+?)\s*$", raw)
        if m:
            out.add(normalize_rel_path(m.group(1)).rstrip("/"))
    return out


def count_entries(directory: Path) -> int:
    """Top-level entries, not counting `.git`."""
    try:
        return sum(1 for name in os.listdir(directory) if name != ".git")
    except OSError:
        return 0


def classify_status(
    exists: bool,
    file_count: int,
    has_package_json: bool,
    has_readme: bool,
    minimal_below: int = DEFAULT_MINIMAL_BELOW,
    content_rich_above: int = DEFAULT_CONTENT_RICH_ABOVE,
) -> str:
    if not exists:
        return STATUS_MISSING
    if file_count == 0:
        return STATUS_EMPTY
    if file_count < minimal_below:
        return STATUS_MINIMAL
    if has_package_json and has_readme:
        return STATUS_SCAFFOLDED
    if file_count > content_rich_above:
        return STATUS_CONTENT_RICH
    return STATUS_PARTIAL


def kind_for_root(root: str) -> str:
    return "app" if Path(root).name == "apps" else "service"


def service_metadata(service_dir: Path, name: str, catalog_entry: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Merge service metadata: agent.project.json wins, then package.json, then
    the catalog entry, then defaults derived from the directory name.
    """
    catalog_entry = catalog_entry or {}
    agent = read_json_object(service_dir / "agent.project.json") or {}
    package = read_json_object(service_dir / "package.json") or {}

    def pick(key: str, *sources: dict[str, Any], default: Any = None) -> Any:
        for source in sources:
            value = source.get(key)
            if value not in (None, ""):
                return value
        return default

    return {
        "description": pick(
            "description", agent, package, catalog_entry, default=f"{name[:1].upper()}{name[1:]} Service"
        ),
        "priority": pick("priority", agent, catalog_entry),
        "domain": pick("domain", agent, catalog_entry),
        "port": pick("port", agent, catalog_entry),
        "package_name": package.get("name") if isinstance(package.get("name"), str) else None,
        "framework": pick("framework", agent, default="next.js"),
    }


def scan_service(
    project_dir: Path,
    rel_path: str,
    kind: str,
    submodule_paths: set[str] | None = None,
    catalog_entry: dict[str, Any] | None = None,
    probe_remotes: bool = True,
    git_timeout: float = gitops.DEFAULT_GIT_TIMEOUT_SECONDS,
    minimal_below: int = DEFAULT_MINIMAL_BELOW,
    content_rich_above: int = DEFAULT_CONTENT_RICH_ABOVE,
) -> dict[str, Any]:
    rel = normalize_rel_path(rel_path).rstrip("/")
    service_dir = project_dir / rel
    name = Path(rel).name
    exists = service_dir.is_dir()
    submodules = submodule_paths if submodule_paths is not None else read_submodule_paths(project_dir)

    record: dict[str, Any] = {
        "name": name,
        "path": rel,
        "kind": kind,
        "exists": exists,
        "has_package_json": False,
        "has_readme": False,
        "has_agent_config": False,
        "is_git_repo": False,
        "is_submodule": rel in submodules,
        "has_remote": False,
        "remote_url": None,
        "file_count": 0,
    }
    if exists:
        record["has_package_json"] = (service_dir / "package.json").is_file()
        record["has_readme"] = (service_dir / "README.md").is_file()
        record["has_agent_config"] = (service_dir / "agent.project.json").is_file()
        record["is_git_repo"] = gitops.is_git_checkout(service_dir)
        record["file_count"] = count_entries(service_dir)
        if probe_remotes and record["is_git_repo"]:
            url = gitops.origin_url(service_dir, timeout=git_timeout)
            record["has_remote"] = url is not None
            record["remote_url"] = url

    record["status"] = classify_status(
        exists,
        record["file_count"],
        record["has_package_json"],
        record["has_readme"],
        minimal_below=minimal_below,
        content_rich_above=content_rich_above,
    )
    record["metadata"] = service_metadata(service_dir, name, catalog_entry)
    return record


def list_root_dirs(project_dir: Path, root: str) -> list[str] | None:
    """Directory names under a root in listing order; None when unreadable."""
    root_dir = project_dir / root
    try:
        entries = list(os.scandir(root_dir))
    except OSError:
        return None
    names: list[str] = []
    for entry in entries:
        try:
            if entry.is_dir():
                names.append(entry.name)
        except OSError:
            continue
    return names


def scan_roots(
    project_dir: Path,
    roots: list[str] | None = None,
    catalog: dict[str, dict[str, Any]] | None = None,
    probe_remotes: bool = True,
    git_timeout: float = gitops.DEFAULT_GIT_TIMEOUT_SECONDS,
    minimal_below: int = DEFAULT_MINIMAL_BELOW,
    content_rich_above: int = DEFAULT_CONTENT_RICH_ABOVE,
    ignore_rules: list[tuple[str, bool]] | None = None,
) -> tuple[list[dict[str, Any]], dict[str, int], list[dict[str, str]]]:
    """
    Build one record per directory name across all roots.

    Records keep directory listing order within a root; sort by path when
    determinism matters. A name already seen under an earlier root is
    shadowed: it gets no record and is listed in the returned duplicates as
    {name, path, shadowed_by}. Returns (records, per-root record counts,
    duplicates).
    """
    catalog = catalog or {}
    rules = ignore_rules if ignore_rules is not None else load_ignore_rules(project_dir)
    submodules = read_submodule_paths(project_dir)
    records: list[dict[str, Any]] = []
    root_counts: dict[str, int] = {}
    seen: dict[str, str] = {}
    duplicates: list[dict[str, str]] = []

    for root in roots or DEFAULT_ROOTS:
        root_rel = normalize_rel_path(root).rstrip("/")
        names = list_root_dirs(project_dir, root_rel)
        if names is None:
            root_counts[root_rel] = 0
            continue
        kind = kind_for_root(root_rel)
        count = 0
        for name in names:
            rel = f"{root_rel}/{name}"
            if is_ignored(rel, rules):
                continue
            if name in seen:
                duplicates.append({"name": name, "path": rel, "shadowed_by": seen[name]})
                continue
            seen[name] = rel
            records.append(
                scan_service(
                    project_dir,
                    rel,
                    kind,
                    submodule_paths=submodules,
                    catalog_entry=catalog.get(name),
                    probe_remotes=probe_remotes,
                    git_timeout=git_timeout,
                    minimal_below=minimal_below,
                    content_rich_above=content_rich_above,
                )
            )
            count += 1
        root_counts[root_rel] = count
    return records, root_counts, sorted(duplicates, key=lambda d: d["path"])


def summarize_inventory(records: list[dict[str, Any]]) -> dict[str, Any]:
    by_status = {status: 0 for status in STATUS_VALUES}
    for record in records:
        status = record.get("status", STATUS_MISSING)
        by_status[status] = by_status.get(status, 0) + 1

    total = len(records)
    ready = sum(by_status[s] for s in READY_STATUSES)
    empty = by_status[STATUS_EMPTY]
    missing = by_status[STATUS_MISSING]
    return {
        "total": total,
        "ready": ready,
        "with_content": total - empty - missing,
        "empty": empty,
        "missing": missing,
        "submodules": sum(1 for r in records if r.get("is_submodule")),
        "by_status": by_status,
        "readiness_percent": round(ready / total * 100) if total else 0,
    }


def detect_architecture(project_dir: Path) -> str:
    has_services = (project_dir / "services").is_dir()
    has_apps = (project_dir / "apps").is_dir()
    if has_services and has_apps:
        return "hybrid"
    if has_services:
        return "services"
    if has_apps:
        return "apps"
    return "none"


def sort_records(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(records, key=lambda r: (r.get("path", ""), r.get("name", "")))
