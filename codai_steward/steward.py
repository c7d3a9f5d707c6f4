#!/usr/bin/env python3
"""
Codai Ecosystem Steward v0

CLI to inventory, scaffold, repair and publish the service directories of a
Codai ecosystem monorepo.
"""

from __future__ import annotations

import argparse
import copy
import json
import os
import re
import sys
from pathlib import Path
from typing import Any

import jsonschema

from codai_steward import dependency_report, gitops, inventory, templates
from codai_steward.reporting import atomic_write_text, dump_report, resolve_out_path, utc_now


CONFIG_FILE = "steward_config_v0.json"
CONFIG_ENV = "CODAI_STEWARD_CONFIG"
ASSETS_ENV = "CODAI_STEWARD_ASSETS_DIR"
CATALOG_ASSET = "ecosystem_catalog_v0.json"
CONFIG_SCHEMA_ASSET = "schemas/steward_config_v0.schema.json"
AGENT_SCHEMA_ASSET = "schemas/agent_project_v0.schema.json"
INDEX_SCHEMA_ASSET = "schemas/projects_index_v0.schema.json"
INDEX_FILE = "projects.index.json"
PORT_ASSIGNMENTS_FILE = "PORT_ASSIGNMENTS.json"
CLEANUP_REPORT_FILE = "cleanup-report.json"
REPORT_VERSION = "v0"

DEFAULT_CONFIG: dict[str, Any] = {
    "version": "v0",
    "organization": "codai-ecosystem",
    "remote_url_template": gitops.DEFAULT_REMOTE_URL_TEMPLATE,
    "roots": list(inventory.DEFAULT_ROOTS),
    "primary_root": "services",
    "thresholds": {
        "minimal_below": inventory.DEFAULT_MINIMAL_BELOW,
        "content_rich_above": inventory.DEFAULT_CONTENT_RICH_ABOVE,
    },
    "git_timeout_seconds": gitops.DEFAULT_GIT_TIMEOUT_SECONDS,
    "default_branch": "main",
    "package_name_template": "@codai/{name}-service",
    "port_base": 4000,
    "scaffold_required_files": ["package.json", "app/page.tsx", "agent.project.json"],
    "essential_files": ["package.json", "README.md", "tsconfig.json", ".gitignore", "agent.project.json"],
    "dev_files": [
        "copilot-instructions.md",
        ".vscode/settings.json",
        ".vscode/tasks.json",
        ".vscode/launch.json",
        ".env.example",
    ],
    "services": {},
}

BACKUP_MARKERS = ("backup", ".bak")
LOG_SUFFIXES = (".log", ".err")
TODO_SUFFIXES = (".ts", ".tsx", ".js", ".jsx", ".md")
TODO_PATTERN = re.compile(r"TODO|FIXME|XXX|HACK")
NEXT_DEV_PATTERN = re.compile(r"next dev(?: -p \d+)?(?=\s|$)")


class ConfigError(Exception):
    """Raised when configuration or bundled assets cannot be used."""


def parse_csv_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def package_root() -> Path:
    return Path(__file__).resolve().parent


def resolve_assets_dir(raw_assets_dir: str | None) -> Path:
    if raw_assets_dir:
        return Path(raw_assets_dir).resolve()
    env_assets = os.environ.get(ASSETS_ENV)
    if env_assets:
        return Path(env_assets).resolve()
    return package_root() / "assets"


def load_asset_json(assets_dir: Path, rel_path: str) -> dict[str, Any]:
    path = assets_dir / rel_path
    if not path.exists():
        raise ConfigError(f"missing asset: {path} (set --assets-dir or {ASSETS_ENV})")
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"invalid asset json {path}: {exc}") from exc
    if not isinstance(obj, dict):
        raise ConfigError(f"invalid asset shape {path}: expected object")
    return obj


def schema_errors(instance: Any, schema: dict[str, Any]) -> list[str]:
    validator_cls = jsonschema.validators.validator_for(schema)
    validator = validator_cls(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.absolute_path))
    out = []
    for err in errors:
        where = "/".join(str(p) for p in err.absolute_path) or "<root>"
        out.append(f"{where}: {err.message}")
    return out


def resolve_config_path(project_dir: Path, raw_config: str | None) -> Path | None:
    if raw_config:
        path = Path(raw_config)
        return path.resolve() if path.is_absolute() else (project_dir / path).resolve()
    env_config = os.environ.get(CONFIG_ENV)
    if env_config:
        return Path(env_config).resolve()
    default = project_dir / CONFIG_FILE
    return default if default.exists() else None


def format_name_template(template: str, setting: str, **fields: str) -> str:
    """Fill {name}/{org} placeholders; anything else is a configuration error."""
    try:
        return template.format(**fields)
    except (AttributeError, KeyError, IndexError, ValueError) as exc:
        raise ConfigError(f"invalid {setting} {template!r}: unsupported placeholder {exc}") from exc


def load_config(project_dir: Path, raw_config: str | None, assets_dir: Path) -> dict[str, Any]:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    catalog = load_asset_json(assets_dir, CATALOG_ASSET)
    services = catalog.get("services", {})
    if not isinstance(services, dict):
        raise ConfigError("invalid catalog shape: services must be an object")
    cfg["services"] = {str(name): dict(entry) for name, entry in services.items() if isinstance(entry, dict)}
    if isinstance(catalog.get("organization"), str):
        cfg["organization"] = catalog["organization"]

    config_path = resolve_config_path(project_dir, raw_config)
    if config_path is None:
        cfg["config_file"] = None
        return cfg
    if not config_path.exists():
        raise ConfigError(f"config file not found: {config_path}")
    try:
        overrides = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"invalid config json {config_path}: {exc}") from exc

    errors = schema_errors(overrides, load_asset_json(assets_dir, CONFIG_SCHEMA_ASSET))
    if errors:
        raise ConfigError(f"invalid config {config_path}: " + "; ".join(errors[:5]))

    for key, value in overrides.items():
        if key == "thresholds":
            cfg["thresholds"].update(value)
        elif key == "services":
            for name, entry in value.items():
                cfg["services"].setdefault(name, {}).update(entry)
        else:
            cfg[key] = value
    cfg["config_file"] = str(config_path)
    for setting in ("package_name_template", "remote_url_template"):
        format_name_template(cfg[setting], setting, name="example", org=cfg["organization"])
    return cfg


def load_context(args: argparse.Namespace) -> tuple[Path, dict[str, Any], Path]:
    project_dir = Path(args.project_dir).resolve()
    if not project_dir.is_dir():
        raise ConfigError(f"project dir not found: {project_dir}")
    assets_dir = resolve_assets_dir(getattr(args, "assets_dir", None))
    cfg = load_config(project_dir, getattr(args, "config", None), assets_dir)
    roots = parse_csv_list(getattr(args, "roots", None))
    if roots:
        cfg["roots"] = roots
    return project_dir, cfg, assets_dir


def remote_url_for(cfg: dict[str, Any], name: str) -> str:
    return gitops.conventional_remote_url(name, cfg["organization"], cfg["remote_url_template"])


def package_name_for(cfg: dict[str, Any], name: str, template: str | None = None, setting: str = "package_name_template") -> str:
    return format_name_template(template or cfg["package_name_template"], setting, name=name, org=cfg["organization"])


def filter_names(names: list[str], raw_filter: str | None) -> list[str]:
    wanted = parse_csv_list(raw_filter)
    if not wanted:
        return names
    return [n for n in names if n in wanted]


def scan_inventory(project_dir: Path, cfg: dict[str, Any], probe_remotes: bool = False) -> tuple[list[dict[str, Any]], dict[str, int], list[dict[str, str]]]:
    records, root_counts, duplicates = inventory.scan_roots(
        project_dir,
        roots=cfg["roots"],
        catalog=cfg["services"],
        probe_remotes=probe_remotes,
        git_timeout=cfg["git_timeout_seconds"],
        minimal_below=cfg["thresholds"]["minimal_below"],
        content_rich_above=cfg["thresholds"]["content_rich_above"],
    )
    for dup in duplicates:
        print(f"warning: {dup['path']} shadowed by {dup['shadowed_by']} (one record per name)", file=sys.stderr)
    return inventory.sort_records(records), root_counts, duplicates


def scan_existing(project_dir: Path, cfg: dict[str, Any], raw_filter: str | None = None, probe_remotes: bool = False) -> list[dict[str, Any]]:
    records, _, _ = scan_inventory(project_dir, cfg, probe_remotes=probe_remotes)
    wanted = set(parse_csv_list(raw_filter))
    if wanted:
        records = [r for r in records if r["name"] in wanted]
    return records


def scan_one(project_dir: Path, cfg: dict[str, Any], rel_path: str, probe_remotes: bool = False) -> dict[str, Any]:
    root = rel_path.split("/", 1)[0]
    name = Path(rel_path).name
    return inventory.scan_service(
        project_dir,
        rel_path,
        inventory.kind_for_root(root),
        catalog_entry=cfg["services"].get(name),
        probe_remotes=probe_remotes,
        git_timeout=cfg["git_timeout_seconds"],
        minimal_below=cfg["thresholds"]["minimal_below"],
        content_rich_above=cfg["thresholds"]["content_rich_above"],
    )


def locate_catalog_service(project_dir: Path, cfg: dict[str, Any], name: str) -> str:
    """First configured root holding the service, else its path under the primary root."""
    for root in cfg["roots"]:
        rel = f"{inventory.normalize_rel_path(root).rstrip('/')}/{name}"
        if (project_dir / rel).is_dir():
            return rel
    return f"{cfg['primary_root']}/{name}"


def op_result(target: str, operation: str, status: str, detail: str = "") -> dict[str, Any]:
    return {"target": target, "operation": operation, "status": status, "detail": detail}


def build_run_report(command: str, project_dir: Path, results: list[dict[str, Any]], **extra: Any) -> dict[str, Any]:
    counts = {"ok": 0, "skipped": 0, "failed": 0}
    for res in results:
        counts[res["status"]] = counts.get(res["status"], 0) + 1
    report = {
        "version": REPORT_VERSION,
        "run_at": utc_now(),
        "command": command,
        "project_dir": str(project_dir),
        "status": "fail" if counts["failed"] else "pass",
        "counts": counts,
        "results": results,
    }
    report.update(extra)
    return report


def emit(args: argparse.Namespace, project_dir: Path, report: dict[str, Any], text_lines: list[str]) -> None:
    if args.format == "json":
        print(json.dumps(report, indent=2, sort_keys=True))
    else:
        for line in text_lines:
            print(line)
    if getattr(args, "out_file", None):
        atomic_write_text(resolve_out_path(project_dir, args.out_file), dump_report(report))


def run_report_lines(report: dict[str, Any]) -> list[str]:
    lines = []
    for res in report["results"]:
        detail = f" ({res['detail']})" if res["detail"] else ""
        lines.append(f"- {res['target']}: {res['operation']} {res['status']}{detail}")
    c = report["counts"]
    lines.append(f"status: {report['status']}")
    lines.append(f"counts: ok={c['ok']} skipped={c['skipped']} failed={c['failed']}")
    return lines


def finish_run(args: argparse.Namespace, project_dir: Path, command: str, results: list[dict[str, Any]], **extra: Any) -> int:
    report = build_run_report(command, project_dir, results, **extra)
    emit(args, project_dir, report, run_report_lines(report))
    for res in results:
        if res["status"] == "failed":
            print(f"error: {res['target']}: {res['operation']} failed: {res['detail']}", file=sys.stderr)
    return 0 if report["status"] == "pass" else 1


def write_file_result(project_dir: Path, path: Path, content: str, force: bool, operation: str) -> dict[str, Any]:
    rel = path.relative_to(project_dir).as_posix()
    existed = path.exists()
    if existed and not force:
        return op_result(rel, operation, "skipped", "exists")
    try:
        atomic_write_text(path, content)
    except OSError as exc:
        return op_result(rel, operation, "failed", str(exc))
    return op_result(rel, operation, "ok", "overwritten" if existed else "created")


def format_table(headers: list[str], rows: list[list[str]]) -> list[str]:
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    lines = ["  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)).rstrip()]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
    return lines


def yes_no(value: bool) -> str:
    return "yes" if value else "no"


def inventory_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    records, root_counts, duplicates = scan_inventory(project_dir, cfg, probe_remotes=not args.no_remotes)
    summary = inventory.summarize_inventory(records)
    report = {
        "version": REPORT_VERSION,
        "run_at": utc_now(),
        "project_dir": str(project_dir),
        "architecture": inventory.detect_architecture(project_dir),
        "roots": root_counts,
        "summary": summary,
        "records": records,
        "duplicates": duplicates,
    }

    rows = [
        [
            r["name"],
            r["kind"],
            r["status"],
            str(r["file_count"]),
            yes_no(r["has_package_json"]),
            yes_no(r["has_readme"]),
            yes_no(r["has_agent_config"]),
            yes_no(r["is_git_repo"]),
            yes_no(r["has_remote"]),
            yes_no(r["is_submodule"]),
        ]
        for r in records
    ]
    lines = [f"architecture: {report['architecture']}"]
    lines.append("roots: " + " ".join(f"{root}={count}" for root, count in root_counts.items()))
    lines.extend(format_table(["name", "kind", "status", "files", "pkg", "readme", "agent", "git", "remote", "submodule"], rows))
    lines.append(
        f"summary: total={summary['total']} ready={summary['ready']} empty={summary['empty']} "
        f"missing={summary['missing']} submodules={summary['submodules']} readiness={summary['readiness_percent']}%"
    )
    emit(args, project_dir, report, lines)
    return 0


def index_descriptor(record: dict[str, Any], cfg: dict[str, Any]) -> dict[str, Any]:
    meta = record["metadata"]
    priority = meta.get("priority")
    port = meta.get("port")
    return {
        "name": record["name"],
        "path": record["path"],
        "status": record["status"],
        "description": str(meta.get("description") or ""),
        "domain": meta.get("domain"),
        "priority": priority if isinstance(priority, int) else None,
        "port": port if isinstance(port, int) else None,
        "repository": remote_url_for(cfg, record["name"]),
        "isSubmodule": record["is_submodule"],
    }


def build_projects_index(records: list[dict[str, Any]], cfg: dict[str, Any]) -> dict[str, Any]:
    apps = [index_descriptor(r, cfg) for r in records if r["kind"] == "app"]
    services = [index_descriptor(r, cfg) for r in records if r["kind"] != "app"]
    return {
        "version": "1.0.0",
        "generator": "codai-steward",
        "lastUpdated": utc_now(),
        "totalApps": len(apps),
        "totalServices": len(services),
        "totalProjects": len(apps) + len(services),
        "apps": apps,
        "services": services,
    }


def index_project(args: argparse.Namespace) -> int:
    project_dir, cfg, assets_dir = load_context(args)
    records = scan_existing(project_dir, cfg)
    payload = build_projects_index(records, cfg)
    errors = schema_errors(payload, load_asset_json(assets_dir, INDEX_SCHEMA_ASSET))
    if errors:
        print("error: generated index violates schema: " + "; ".join(errors[:5]), file=sys.stderr)
        return 1

    index_path = resolve_out_path(project_dir, args.index_file)
    if args.check:
        existing = inventory.read_json_object(index_path)
        if existing is None:
            stale, reason = True, "index file missing or unreadable"
        else:
            comparable = {k: v for k, v in payload.items() if k != "lastUpdated"}
            on_disk = {k: v for k, v in existing.items() if k != "lastUpdated"}
            stale = comparable != on_disk
            reason = "index differs from filesystem" if stale else ""
        report = {
            "version": REPORT_VERSION,
            "run_at": utc_now(),
            "index_file": str(index_path),
            "status": "stale" if stale else "current",
            "reason": reason,
        }
        lines = [f"status: {report['status']}", f"index_file: {index_path}"]
        if reason:
            lines.append(f"reason: {reason}")
        emit(args, project_dir, report, lines)
        return 1 if stale else 0

    atomic_write_text(index_path, json.dumps(payload, indent=2) + "\n")
    lines = [
        f"index: {index_path}",
        f"apps: {payload['totalApps']} services: {payload['totalServices']} total: {payload['totalProjects']}",
    ]
    emit(args, project_dir, payload, lines)
    return 0


def connection_state(record: dict[str, Any]) -> str:
    if not record["exists"]:
        return "missing"
    complete = record["file_count"] > 0 and record["has_package_json"] and record["has_readme"]
    if not complete:
        return "incomplete"
    if record["is_submodule"]:
        return inventory.STATUS_SUBMODULE
    if record["is_git_repo"] and record["has_remote"]:
        return "linked"
    return "local-only"


def verify_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    names = filter_names(list(cfg["services"]), args.services)
    entries = []
    for name in names:
        record = scan_one(project_dir, cfg, locate_catalog_service(project_dir, cfg, name), probe_remotes=not args.no_remotes)
        record["connection"] = connection_state(record)
        entries.append(record)

    by_connection: dict[str, int] = {}
    for e in entries:
        by_connection[e["connection"]] = by_connection.get(e["connection"], 0) + 1
    connected = by_connection.get("submodule", 0) + by_connection.get("linked", 0)
    total = len(entries)
    issues = [
        f"{e['path']}: has package.json but no git repository"
        for e in entries
        if e["has_package_json"] and not e["is_git_repo"]
    ]
    report = {
        "version": REPORT_VERSION,
        "run_at": utc_now(),
        "project_dir": str(project_dir),
        "summary": {
            "total": total,
            "connected": connected,
            "completion_percent": round(connected / total * 100) if total else 0,
            "by_connection": by_connection,
            "inventory": inventory.summarize_inventory(entries),
        },
        "issues": issues,
        "repositories": entries,
    }

    rows = [[e["name"], e["connection"], e["status"], str(e["file_count"]), e["path"]] for e in entries]
    lines = format_table(["repository", "connection", "status", "files", "path"], rows)
    lines.append(f"connected: {connected}/{total} ({report['summary']['completion_percent']}%)")
    lines.append("by_connection: " + " ".join(f"{k}={v}" for k, v in sorted(by_connection.items())))
    for issue in issues:
        lines.append(f"issue: {issue}")
    emit(args, project_dir, report, lines)

    if args.fail_on_incomplete and connected != total:
        return 1
    return 0


def count_files_recursive(directory: Path) -> int:
    count = 0
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = [d for d in dirnames if not d.startswith(".git") and d != "node_modules"]
        count += len(filenames)
    return count


def completeness_project(args: argparse.Namespace) -> int:
    project_dir, cfg, assets_dir = load_context(args)
    agent_schema = load_asset_json(assets_dir, AGENT_SCHEMA_ASSET)
    records = scan_existing(project_dir, cfg, args.services)

    services = []
    for record in records:
        service_dir = project_dir / record["path"]
        essential_missing = [f for f in cfg["essential_files"] if not (service_dir / f).exists()]
        dev_missing = [f for f in cfg["dev_files"] if not (service_dir / f).exists()]
        agent_errors: list[str] = []
        if record["has_agent_config"]:
            agent = inventory.read_json_object(service_dir / "agent.project.json")
            if agent is None:
                agent_errors = ["agent.project.json is not a valid JSON object"]
            else:
                agent_errors = schema_errors(agent, agent_schema)
        ready = not essential_missing and not dev_missing and not agent_errors
        services.append(
            {
                "name": record["name"],
                "path": record["path"],
                "status": "ready" if ready else "partial",
                "file_count": count_files_recursive(service_dir),
                "essential_score": len(cfg["essential_files"]) - len(essential_missing),
                "dev_score": len(cfg["dev_files"]) - len(dev_missing),
                "essential_missing": essential_missing,
                "dev_missing": dev_missing,
                "agent_config_errors": agent_errors,
                "metadata": record["metadata"],
            }
        )

    complete = sum(1 for s in services if s["status"] == "ready")
    total = len(services)
    report = {
        "version": REPORT_VERSION,
        "run_at": utc_now(),
        "project_dir": str(project_dir),
        "summary": {
            "total": total,
            "ready": complete,
            "partial": total - complete,
            "ready_percent": round(complete / total * 100) if total else 0,
            "total_files": sum(s["file_count"] for s in services),
        },
        "services": services,
    }

    n_ess = len(cfg["essential_files"])
    n_dev = len(cfg["dev_files"])
    rows = [
        [s["name"], s["status"], f"{s['essential_score']}/{n_ess}", f"{s['dev_score']}/{n_dev}", str(s["file_count"])]
        for s in services
    ]
    lines = format_table(["service", "status", "essential", "dev", "files"], rows)
    for s in services:
        for err in s["agent_config_errors"]:
            lines.append(f"warning: {s['path']}/agent.project.json: {err}")
    lines.append(f"ready: {complete}/{total} ({report['summary']['ready_percent']}%)")
    emit(args, project_dir, report, lines)

    if args.fail_on_partial and complete != total:
        return 1
    return 0


def missing_scaffold_files(service_dir: Path, required: list[str]) -> list[str]:
    """Required scaffold files that are absent."""
    return [f for f in required if not (service_dir / f).exists()]


def remote_audit_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    names = filter_names(list(cfg["services"]), args.services)
    categories: dict[str, list[str]] = {
        "content_rich": [],
        "needs_push": [],
        "empty": [],
        "non_existent": [],
    }
    repositories = []
    for name in names:
        url = remote_url_for(cfg, name)
        refs, err = gitops.ls_remote_refs(url, cwd=project_dir, timeout=cfg["git_timeout_seconds"])
        service_dir = project_dir / cfg["primary_root"] / name
        scaffolded = service_dir.is_dir() and not missing_scaffold_files(service_dir, cfg["scaffold_required_files"])
        if refs is None:
            category = "non_existent"
        elif len(refs) > 2:
            category = "content_rich"
        elif scaffolded:
            category = "needs_push"
        else:
            category = "empty"
        categories[category].append(name)
        repositories.append(
            {
                "name": name,
                "url": url,
                "category": category,
                "ref_count": len(refs) if refs is not None else 0,
                "has_local_scaffolding": scaffolded,
                "detail": err or "",
            }
        )

    actions = []
    if categories["needs_push"]:
        actions.append(f"push {len(categories['needs_push'])} scaffolded services (codai-steward push)")
    if categories["empty"]:
        actions.append(f"scaffold {len(categories['empty'])} empty repositories (codai-steward scaffold)")
    if categories["non_existent"]:
        actions.append(f"create {len(categories['non_existent'])} missing remote repositories")
    report = {
        "version": REPORT_VERSION,
        "run_at": utc_now(),
        "project_dir": str(project_dir),
        "summary": {
            "total": len(names),
            "existing": len(names) - len(categories["non_existent"]),
            **{k: len(v) for k, v in categories.items()},
        },
        "categories": categories,
        "repositories": repositories,
        "recommended_actions": actions,
    }

    lines = [f"- {r['name']}: {r['category']}" for r in repositories]
    s = report["summary"]
    lines.append(
        f"summary: total={s['total']} existing={s['existing']} content_rich={s['content_rich']} "
        f"needs_push={s['needs_push']} empty={s['empty']} non_existent={s['non_existent']}"
    )
    for i, action in enumerate(actions, start=1):
        lines.append(f"action {i}: {action}")
    emit(args, project_dir, report, lines)
    return 0


def scaffold_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    root = args.root or cfg["primary_root"]
    names = filter_names(list(cfg["services"]), args.services)
    generated_at = utc_now()
    results: list[dict[str, Any]] = []

    for name in names:
        rel = f"{root}/{name}"
        record = scan_one(project_dir, cfg, rel)
        if record["status"] not in {inventory.STATUS_MISSING, inventory.STATUS_EMPTY}:
            results.append(op_result(rel, "scaffold", "skipped", f"already has content ({record['file_count']} entries)"))
            continue
        entry = cfg["services"].get(name, {})
        files = templates.scaffold_files(
            name,
            entry,
            package_name=package_name_for(cfg, name),
            repository=remote_url_for(cfg, name),
            generated_at=generated_at,
        )
        for rel_file, content in files.items():
            results.append(write_file_result(project_dir, project_dir / rel / rel_file, content, args.force, "scaffold"))

    return finish_run(args, project_dir, "scaffold", results)


def add_configs_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    results: list[dict[str, Any]] = []
    for record in scan_existing(project_dir, cfg, args.services):
        entry = dict(cfg["services"].get(record["name"], {}))
        port = record["metadata"].get("port")
        if isinstance(port, int):
            entry["port"] = port
        service_dir = project_dir / record["path"]
        for rel_file, content in templates.config_files(record["name"], entry).items():
            results.append(write_file_result(project_dir, service_dir / rel_file, content, args.force, "add-config"))
    return finish_run(args, project_dir, "add-configs", results)


def add_components_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    results: list[dict[str, Any]] = []
    for record in scan_existing(project_dir, cfg, args.services):
        service_dir = project_dir / record["path"]
        if not record["has_package_json"]:
            results.append(op_result(record["path"], "add-component", "skipped", "no package.json"))
            continue
        for rel_file, content in templates.ui_component_files().items():
            results.append(write_file_result(project_dir, service_dir / rel_file, content, args.force, "add-component"))
    return finish_run(args, project_dir, "add-components", results)


def gitignore_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    timeout = cfg["git_timeout_seconds"]
    results: list[dict[str, Any]] = []
    for record in scan_existing(project_dir, cfg, args.services):
        service_dir = project_dir / record["path"]
        path = service_dir / ".gitignore"
        target = f"{record['path']}/.gitignore"
        try:
            existing = path.read_text(encoding="utf-8") if path.exists() else None
        except (OSError, UnicodeDecodeError) as exc:
            results.append(op_result(target, "gitignore", "failed", str(exc)))
            continue

        if not templates.gitignore_needs_update(existing) and not args.force:
            results.append(op_result(target, "gitignore", "skipped", "already covers standard entries"))
        else:
            try:
                atomic_write_text(path, templates.merged_gitignore(existing))
                results.append(op_result(target, "gitignore", "ok", "created" if existing is None else "updated"))
            except OSError as exc:
                results.append(op_result(target, "gitignore", "failed", str(exc)))

        if args.untrack_node_modules and record["is_git_repo"]:
            tracked = gitops.tracked_files(service_dir, "node_modules", timeout=timeout)
            if tracked:
                res = gitops.run_git(["rm", "-r", "--cached", "--quiet", "node_modules"], cwd=service_dir, timeout=timeout)
                results.append(
                    op_result(
                        record["path"],
                        "untrack-node-modules",
                        "ok" if res["ok"] else "failed",
                        f"{len(tracked)} files" if res["ok"] else res["detail"],
                    )
                )
    return finish_run(args, project_dir, "gitignore", results)


def load_package_json(path: Path) -> tuple[dict[str, Any] | None, str | None]:
    if not path.exists():
        return None, "no package.json"
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        return None, f"invalid package.json: {exc}"
    if not isinstance(obj, dict):
        return None, "invalid package.json: expected object"
    return obj, None


def write_package_json(path: Path, obj: dict[str, Any]) -> None:
    atomic_write_text(path, json.dumps(obj, indent=2, ensure_ascii=False) + "\n")


def load_port_assignments(path: Path) -> dict[str, int]:
    obj = inventory.read_json_object(path) or {}
    return {str(k): v for k, v in obj.items() if isinstance(v, int) and not isinstance(v, bool)}


def plan_ports(records: list[dict[str, Any]], cfg: dict[str, Any], previous: dict[str, int] | None = None) -> dict[str, int]:
    """
    Port per service path over the whole inventory.

    Catalog ports win, then a port recorded for the same path by an earlier
    run, then the lowest port from port_base not yet used.
    """
    previous = previous or {}
    used = {e["port"] for e in cfg["services"].values() if isinstance(e.get("port"), int)}
    plan: dict[str, int] = {}
    for record in records:
        port = cfg["services"].get(record["name"], {}).get("port")
        if isinstance(port, int):
            plan[record["path"]] = port
        elif record["path"] in previous and previous[record["path"]] not in used:
            plan[record["path"]] = previous[record["path"]]
            used.add(plan[record["path"]])
    next_port = cfg["port_base"]
    for record in records:
        if record["path"] in plan:
            continue
        while next_port in used:
            next_port += 1
        plan[record["path"]] = next_port
        used.add(next_port)
    return plan


def assign_ports_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    mapping_path = resolve_out_path(project_dir, args.mapping_file)
    all_records = scan_existing(project_dir, cfg)
    existing_paths = {r["path"] for r in all_records}
    previous = {p: port for p, port in load_port_assignments(mapping_path).items() if p in existing_paths}
    plan = plan_ports(all_records, cfg, previous)
    wanted = set(parse_csv_list(args.services))
    records = [r for r in all_records if not wanted or r["name"] in wanted]
    results: list[dict[str, Any]] = []
    assigned: dict[str, int] = dict(previous)

    for record in records:
        port = plan[record["path"]]
        path = project_dir / record["path"] / "package.json"
        pkg, err = load_package_json(path)
        if pkg is None:
            results.append(op_result(record["path"], "assign-port", "skipped" if err == "no package.json" else "failed", err or ""))
            continue
        scripts = pkg.get("scripts")
        dev = scripts.get("dev") if isinstance(scripts, dict) else None
        if not isinstance(dev, str) or not NEXT_DEV_PATTERN.search(dev):
            results.append(op_result(record["path"], "assign-port", "skipped", "no next dev script"))
            continue
        updated = NEXT_DEV_PATTERN.sub(f"next dev -p {port}", dev)
        assigned[record["path"]] = port
        if updated == dev:
            results.append(op_result(record["path"], "assign-port", "skipped", f"already on port {port}"))
            continue
        scripts["dev"] = updated
        try:
            write_package_json(path, pkg)
        except OSError as exc:
            if record["path"] in previous:
                assigned[record["path"]] = previous[record["path"]]
            else:
                assigned.pop(record["path"], None)
            results.append(op_result(record["path"], "assign-port", "failed", str(exc)))
            continue
        results.append(op_result(record["path"], "assign-port", "ok", f"port {port}"))

    atomic_write_text(mapping_path, json.dumps(dict(sorted(assigned.items())), indent=2) + "\n")
    return finish_run(args, project_dir, "assign-ports", results, port_mapping_file=str(mapping_path))


def rename_packages_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    template = args.name_template or cfg["package_name_template"]
    setting = "--name-template" if args.name_template else "package_name_template"
    package_name_for(cfg, "example", template, setting)
    results: list[dict[str, Any]] = []
    for record in scan_existing(project_dir, cfg, args.services):
        path = project_dir / record["path"] / "package.json"
        pkg, err = load_package_json(path)
        if pkg is None:
            results.append(op_result(record["path"], "rename-package", "skipped" if err == "no package.json" else "failed", err or ""))
            continue
        new_name = package_name_for(cfg, record["name"], template, setting)
        old_name = pkg.get("name")
        if old_name == new_name:
            results.append(op_result(record["path"], "rename-package", "skipped", f"already {new_name}"))
            continue
        pkg["name"] = new_name
        try:
            write_package_json(path, pkg)
        except OSError as exc:
            results.append(op_result(record["path"], "rename-package", "failed", str(exc)))
            continue
        results.append(op_result(record["path"], "rename-package", "ok", f"{old_name} -> {new_name}"))
    return finish_run(args, project_dir, "rename-packages", results)


def submodule_add_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    if not gitops.is_git_checkout(project_dir):
        print(f"error: not a git repository: {project_dir}", file=sys.stderr)
        return 1
    timeout = cfg["git_timeout_seconds"]
    root = args.root or cfg["primary_root"]
    results: list[dict[str, Any]] = []
    for name in filter_names(list(cfg["services"]), args.services):
        rel = f"{root}/{name}"
        if (project_dir / rel).exists():
            results.append(op_result(rel, "submodule-add", "skipped", "already present"))
            continue
        url = remote_url_for(cfg, name)
        refs, err = gitops.ls_remote_refs(url, cwd=project_dir, timeout=timeout, heads_only=True)
        if refs is None:
            results.append(op_result(rel, "submodule-add", "skipped", f"remote not found: {url}"))
            continue
        res = gitops.run_git(["submodule", "add", url, rel], cwd=project_dir, timeout=timeout)
        results.append(op_result(rel, "submodule-add", "ok" if res["ok"] else "failed", url if res["ok"] else res["detail"]))
    return finish_run(args, project_dir, "submodule-add", results)


def set_remote_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    timeout = cfg["git_timeout_seconds"]
    results: list[dict[str, Any]] = []
    for record in scan_existing(project_dir, cfg, args.services, probe_remotes=True):
        if not record["is_git_repo"]:
            results.append(op_result(record["path"], "set-remote", "skipped", "not a git repository"))
            continue
        desired = remote_url_for(cfg, record["name"])
        current = record["remote_url"]
        if current == desired:
            results.append(op_result(record["path"], "set-remote", "skipped", "origin already set"))
            continue
        git_args = ["remote", "add", "origin", desired] if current is None else ["remote", "set-url", "origin", desired]
        res = gitops.run_git(git_args, cwd=project_dir / record["path"], timeout=timeout)
        results.append(op_result(record["path"], "set-remote", "ok" if res["ok"] else "failed", desired if res["ok"] else res["detail"]))
    return finish_run(args, project_dir, "set-remote", results)


def push_service(project_dir: Path, record: dict[str, Any], cfg: dict[str, Any], branch: str) -> dict[str, Any]:
    service_dir = project_dir / record["path"]
    timeout = cfg["git_timeout_seconds"]
    if not record["is_git_repo"]:
        return op_result(record["path"], "push", "skipped", "not a git repository")
    missing = missing_scaffold_files(service_dir, cfg["scaffold_required_files"])
    if missing:
        return op_result(record["path"], "push", "skipped", "not scaffolded (missing: " + ", ".join(missing) + ")")

    dirty, err = gitops.porcelain_status(service_dir, timeout=timeout)
    if err is not None:
        return op_result(record["path"], "push", "failed", f"status: {err}")
    if not dirty:
        return op_result(record["path"], "push", "skipped", "nothing to commit")

    message = templates.commit_message(record["name"], cfg["services"].get(record["name"], {}))
    for step, git_args in (
        ("add", ["add", "."]),
        ("commit", ["commit", "-m", message]),
        ("push", ["push", "origin", branch]),
    ):
        res = gitops.run_git(git_args, cwd=service_dir, timeout=timeout)
        if not res["ok"]:
            return op_result(record["path"], "push", "failed", f"{step}: {res['detail']}")
    return op_result(record["path"], "push", "ok", f"{len(dirty)} files pushed to origin/{branch}")


def push_project(args: argparse.Namespace) -> int:
    project_dir, cfg, _ = load_context(args)
    branch = args.branch or cfg["default_branch"]
    results = [push_service(project_dir, record, cfg, branch) for record in scan_existing(project_dir, cfg, args.services)]
    return finish_run(args, project_dir, "push", results)


def dependency_report_project(args: argparse.Namespace) -> int:
    project_dir, _, _ = load_context(args)
    report = dependency_report.compute_dependency_report(project_dir)
    out = resolve_out_path(project_dir, args.report_file)
    atomic_write_text(out, dump_report(report))
    emit(args, project_dir, report, [dependency_report.render_text(report), f"report: {out}"])
    return 0


def find_cleanup_candidates(project_dir: Path, rules: list[tuple[str, bool]]) -> tuple[list[Path], list[Path], int]:
    backups: list[Path] = []
    logs: list[Path] = []
    todo_count = 0
    for dirpath, dirnames, filenames in os.walk(project_dir):
        dirnames[:] = sorted(d for d in dirnames if d != "node_modules" and not d.startswith("."))
        base = Path(dirpath)
        for filename in sorted(filenames):
            path = base / filename
            rel = path.relative_to(project_dir).as_posix()
            if inventory.is_ignored(rel, rules):
                continue
            if any(marker in filename for marker in BACKUP_MARKERS):
                backups.append(path)
            elif filename.endswith(LOG_SUFFIXES):
                logs.append(path)
            elif filename.endswith(TODO_SUFFIXES):
                try:
                    text = path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError):
                    continue
                todo_count += sum(1 for line in text.splitlines() if TODO_PATTERN.search(line))
    return backups, logs, todo_count


def cleanup_project(args: argparse.Namespace) -> int:
    project_dir, _, _ = load_context(args)
    rules = inventory.load_ignore_rules(project_dir)
    backups, logs, todo_count = find_cleanup_candidates(project_dir, rules)

    results: list[dict[str, Any]] = []
    bytes_freed = 0
    for kind, paths in (("remove-backup", backups), ("remove-log", logs)):
        for path in paths:
            rel = path.relative_to(project_dir).as_posix()
            try:
                size = path.stat().st_size
                if args.dry_run:
                    results.append(op_result(rel, kind, "skipped", "dry run"))
                    continue
                path.unlink()
            except OSError as exc:
                results.append(op_result(rel, kind, "failed", str(exc)))
                continue
            bytes_freed += size
            results.append(op_result(rel, kind, "ok", f"{size} bytes"))

    package_count = len(dependency_report.find_package_files(project_dir))
    report = build_run_report(
        "cleanup",
        project_dir,
        results,
        dry_run=args.dry_run,
        summary={
            "files_removed": sum(1 for r in results if r["status"] == "ok"),
            "bytes_freed": bytes_freed,
            "backup_files": len(backups),
            "log_files": len(logs),
            "packages_analyzed": package_count,
            "todo_items": todo_count,
        },
    )
    report_path = resolve_out_path(project_dir, args.report_file)
    atomic_write_text(report_path, dump_report(report))

    lines = run_report_lines(report)
    s = report["summary"]
    lines.append(f"files_removed: {s['files_removed']} bytes_freed: {s['bytes_freed']} todo_items: {s['todo_items']}")
    lines.append(f"report: {report_path}")
    emit(args, project_dir, report, lines)
    return 0 if report["status"] == "pass" else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Codai Ecosystem Steward v0")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_common_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--project-dir", required=True)
        p.add_argument(
            "--config",
            help=f"Config file (default: ${CONFIG_ENV} or <project-dir>/{CONFIG_FILE} when present).",
        )
        p.add_argument(
            "--assets-dir",
            help=f"Assets root with catalog and schemas (defaults to ${ASSETS_ENV} or bundled assets).",
        )

    def add_output_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--format", choices=["text", "json"], default="text")
        p.add_argument("--out-file", help="Optional report file path (absolute or project-relative).")

    def add_roots_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument("--roots", help="Comma-separated directories to scan (default from config: apps,services).")

    def add_services_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument("--services", help="Comma-separated service names to limit the run to.")

    p_inventory = sub.add_parser("inventory", help="Scan service roots and classify every directory.")
    add_common_args(p_inventory)
    add_roots_arg(p_inventory)
    add_output_args(p_inventory)
    p_inventory.add_argument("--no-remotes", action="store_true", help="Skip `git remote get-url` probes.")
    p_inventory.set_defaults(func=inventory_project)

    p_index = sub.add_parser("index", help=f"Regenerate the canonical {INDEX_FILE}.")
    add_common_args(p_index)
    add_roots_arg(p_index)
    add_output_args(p_index)
    p_index.add_argument("--index-file", default=INDEX_FILE)
    p_index.add_argument("--check", action="store_true", help="Exit non-zero when the index on disk is stale.")
    p_index.set_defaults(func=index_project)

    p_verify = sub.add_parser("verify", help="Check every catalog repository is present and connected.")
    add_common_args(p_verify)
    add_roots_arg(p_verify)
    add_services_arg(p_verify)
    add_output_args(p_verify)
    p_verify.add_argument("--no-remotes", action="store_true")
    p_verify.add_argument("--fail-on-incomplete", action="store_true", help="Exit non-zero unless all are connected.")
    p_verify.set_defaults(func=verify_project)

    p_complete = sub.add_parser("completeness", help="Audit essential/dev files and agent config of each service.")
    add_common_args(p_complete)
    add_roots_arg(p_complete)
    add_services_arg(p_complete)
    add_output_args(p_complete)
    p_complete.add_argument("--fail-on-partial", action="store_true")
    p_complete.set_defaults(func=completeness_project)

    p_remote = sub.add_parser("remote-audit", help="Probe catalog repositories on the remote host.")
    add_common_args(p_remote)
    add_services_arg(p_remote)
    add_output_args(p_remote)
    p_remote.set_defaults(func=remote_audit_project)

    p_scaffold = sub.add_parser("scaffold", help="Create boilerplate for missing or empty catalog services.")
    add_common_args(p_scaffold)
    add_services_arg(p_scaffold)
    add_output_args(p_scaffold)
    p_scaffold.add_argument("--root", help="Target root (default: primary_root from config).")
    p_scaffold.add_argument("--force", action="store_true", help="Overwrite existing files.")
    p_scaffold.set_defaults(func=scaffold_project)

    p_configs = sub.add_parser("add-configs", help="Add editor, agent and env config files to services.")
    add_common_args(p_configs)
    add_roots_arg(p_configs)
    add_services_arg(p_configs)
    add_output_args(p_configs)
    p_configs.add_argument("--force", action="store_true", help="Overwrite existing files.")
    p_configs.set_defaults(func=add_configs_project)

    p_components = sub.add_parser("add-components", help="Add dependency-free UI components under components/ui.")
    add_common_args(p_components)
    add_roots_arg(p_components)
    add_services_arg(p_components)
    add_output_args(p_components)
    p_components.add_argument("--force", action="store_true", help="Overwrite existing files.")
    p_components.set_defaults(func=add_components_project)

    p_gitignore = sub.add_parser("gitignore", help="Ensure every service has the standard .gitignore.")
    add_common_args(p_gitignore)
    add_roots_arg(p_gitignore)
    add_services_arg(p_gitignore)
    add_output_args(p_gitignore)
    p_gitignore.add_argument("--force", action="store_true", help="Rewrite even when the file looks complete.")
    p_gitignore.add_argument("--untrack-node-modules", action="store_true", help="Run `git rm --cached` on tracked node_modules.")
    p_gitignore.set_defaults(func=gitignore_project)

    p_ports = sub.add_parser("assign-ports", help="Pin `next dev` ports in each package.json.")
    add_common_args(p_ports)
    add_roots_arg(p_ports)
    add_services_arg(p_ports)
    add_output_args(p_ports)
    p_ports.add_argument("--mapping-file", default=PORT_ASSIGNMENTS_FILE)
    p_ports.set_defaults(func=assign_ports_project)

    p_rename = sub.add_parser("rename-packages", help="Normalize package.json names across services.")
    add_common_args(p_rename)
    add_roots_arg(p_rename)
    add_services_arg(p_rename)
    add_output_args(p_rename)
    p_rename.add_argument("--name-template", help="Format string with {name} and {org} (default from config).")
    p_rename.set_defaults(func=rename_packages_project)

    p_submodule = sub.add_parser("submodule-add", help="Add absent catalog repositories as git submodules.")
    add_common_args(p_submodule)
    add_services_arg(p_submodule)
    add_output_args(p_submodule)
    p_submodule.add_argument("--root", help="Target root (default: primary_root from config).")
    p_submodule.set_defaults(func=submodule_add_project)

    p_remote_set = sub.add_parser("set-remote", help="Point each service's origin at its conventional URL.")
    add_common_args(p_remote_set)
    add_roots_arg(p_remote_set)
    add_services_arg(p_remote_set)
    add_output_args(p_remote_set)
    p_remote_set.set_defaults(func=set_remote_project)

    p_push = sub.add_parser("push", help="Commit and push scaffolded services to their remotes.")
    add_common_args(p_push)
    add_roots_arg(p_push)
    add_services_arg(p_push)
    add_output_args(p_push)
    p_push.add_argument("--branch", help="Branch to push (default: default_branch from config).")
    p_push.set_defaults(func=push_project)

    p_deps = sub.add_parser("dependency-report", help="Analyze dependency versions across package.json files.")
    add_common_args(p_deps)
    add_output_args(p_deps)
    p_deps.add_argument("--report-file", default=dependency_report.REPORT_FILE)
    p_deps.set_defaults(func=dependency_report_project)

    p_cleanup = sub.add_parser("cleanup", help="Remove backup and log files and count TODO markers.")
    add_common_args(p_cleanup)
    add_output_args(p_cleanup)
    p_cleanup.add_argument("--dry-run", action="store_true", help="List candidates without deleting them.")
    p_cleanup.add_argument("--report-file", default=CLEANUP_REPORT_FILE)
    p_cleanup.set_defaults(func=cleanup_project)

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    try:
        return args.func(args)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
