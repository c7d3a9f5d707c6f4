from __future__ import annotations

import json
import sys
from pathlib import Path

from conftest import REPO_ROOT, load_json, make_service, run_cmd, run_json, run_steward


def dependency_monorepo(project_dir: Path) -> None:
    services = project_dir / "services"
    for i in range(7):
        make_service(
            services,
            f"svc{i}",
            package_json={
                "name": f"svc{i}",
                "dependencies": {"react": "^18.0.0" if i < 5 else "^17.0.2", "next": "^14.0.0"},
                "devDependencies": {"typescript": "^5.0.0"},
            },
        )
    make_service(services, "broken")
    (services / "broken" / "package.json").write_text("{oops", encoding="utf-8")
    vendored = services / "svc0" / "node_modules" / "react"
    vendored.mkdir(parents=True)
    (vendored / "package.json").write_text(json.dumps({"name": "react", "version": "18.2.0"}), encoding="utf-8")


def test_dependency_report_finds_conflicts_and_common_deps(tmp_path: Path) -> None:
    project_dir = tmp_path / "proj"
    dependency_monorepo(project_dir)
    payload = run_json(project_dir, "dependency-report")

    assert payload["summary"]["total_packages"] == 7
    assert payload["summary"]["unreadable"] == 1
    assert sorted(payload["version_conflicts"]) == ["react"]
    assert len(payload["version_conflicts"]["react"]["^18.0.0"]) == 5
    assert payload["common_dependencies"][0] == ["next", 7]

    kinds = {(s["type"], s["dependency"]) for s in payload["suggestions"]}
    assert ("version_conflict", "react") in kinds
    assert ("extract_common", "next") in kinds
    assert ("extract_common", "typescript") in kinds

    saved = load_json(project_dir / "dependency-analysis-report.json")
    assert saved["summary"] == payload["summary"]


def test_dependency_report_runs_standalone(tmp_path: Path) -> None:
    project_dir = tmp_path / "proj"
    dependency_monorepo(project_dir)
    out = tmp_path / "deps.json"
    proc = run_cmd(
        [sys.executable, "-m", "codai_steward.dependency_report", "--project-dir", str(project_dir), "--report-file", str(out)],
        cwd=REPO_ROOT,
    )
    assert "version_conflicts: 1" in proc.stdout
    assert load_json(out)["summary"]["total_packages"] == 7


def cleanup_tree(project_dir: Path) -> None:
    web = make_service(project_dir / "services", "web", entries=1)
    (web / "page.tsx.backup").write_text("old\n", encoding="utf-8")
    (web / "config.bak.json").write_text("{}\n", encoding="utf-8")
    (web / "dev.log").write_text("12345\n", encoding="utf-8")
    (web / "build.err").write_text("boom\n", encoding="utf-8")
    (web / "index.ts").write_text("// TODO: wire api\n// FIXME later\nexport {}\n", encoding="utf-8")
    (web / "NOTES.md").write_text("HACK around it\n", encoding="utf-8")
    (web / "node_modules").mkdir()
    (web / "node_modules" / "install.log").write_text("keep\n", encoding="utf-8")
    (web / ".cache").mkdir()
    (web / ".cache" / "old.backup").write_text("keep\n", encoding="utf-8")
    (project_dir / "archive").mkdir()
    (project_dir / "archive" / "run.log").write_text("keep\n", encoding="utf-8")
    (project_dir / ".stewardignore").write_text("archive/\n", encoding="utf-8")


def test_cleanup_removes_backups_and_logs(tmp_path: Path) -> None:
    project_dir = tmp_path / "proj"
    cleanup_tree(project_dir)
    payload = run_json(project_dir, "cleanup")
    web = project_dir / "services" / "web"

    assert not (web / "page.tsx.backup").exists()
    assert not (web / "config.bak.json").exists()
    assert not (web / "dev.log").exists()
    assert not (web / "build.err").exists()
    assert (web / "node_modules" / "install.log").exists()
    assert (web / ".cache" / "old.backup").exists()
    assert (project_dir / "archive" / "run.log").exists()

    summary = payload["summary"]
    assert summary["files_removed"] == 4
    assert summary["backup_files"] == 2
    assert summary["log_files"] == 2
    assert summary["bytes_freed"] == 4 + 3 + 6 + 5
    assert summary["todo_items"] == 3
    assert load_json(project_dir / "cleanup-report.json")["summary"] == summary


def test_cleanup_dry_run_keeps_files(tmp_path: Path) -> None:
    project_dir = tmp_path / "proj"
    cleanup_tree(project_dir)
    proc = run_steward(project_dir, "cleanup", "--dry-run")
    web = project_dir / "services" / "web"
    assert (web / "dev.log").exists()
    assert (web / "page.tsx.backup").exists()
    assert "remove-log skipped (dry run)" in proc.stdout
    report = load_json(project_dir / "cleanup-report.json")
    assert report["dry_run"] is True
    assert report["summary"]["files_removed"] == 0
    assert report["counts"]["skipped"] == 4


def test_report_commands_share_config_and_output_options(tmp_path: Path) -> None:
    project_dir = tmp_path / "proj"
    dependency_monorepo(project_dir)
    assets_dir = REPO_ROOT / "codai_steward" / "assets"

    run_steward(project_dir, "dependency-report", "--assets-dir", str(assets_dir), "--out-file", "copies/deps.json")
    assert load_json(project_dir / "copies" / "deps.json")["summary"]["total_packages"] == 7

    run_steward(project_dir, "cleanup", "--dry-run", "--assets-dir", str(assets_dir))
    run_steward(project_dir, "index", "--out-file", "copies/index.json")
    assert load_json(project_dir / "copies" / "index.json")["totalServices"] == 8


def test_report_commands_reject_invalid_config(tmp_path: Path) -> None:
    project_dir = tmp_path / "proj"
    dependency_monorepo(project_dir)
    (project_dir / "steward_config_v0.json").write_text(json.dumps({"version": "v1"}), encoding="utf-8")
    proc = run_steward(project_dir, "cleanup", "--dry-run", expect_code=1)
    assert proc.stderr.startswith("error: invalid config")
    run_steward(project_dir, "dependency-report", expect_code=1)
