from __future__ import annotations

import json
import shutil
import subprocess
import sys
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
STEWARD_MODULE = "codai_steward.steward"


def run_cmd(args: list[str], cwd: Path, expect_code: int = 0, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    proc = subprocess.run(args, cwd=str(cwd), text=True, capture_output=True, check=False, env=env)
    if proc.returncode != expect_code:
        raise AssertionError(
            f"command failed\ncwd={cwd}\nargs={args}\n"
            f"expected={expect_code} got={proc.returncode}\n"
            f"stdout:\n{proc.stdout}\n\nstderr:\n{proc.stderr}"
        )
    return proc


def run_steward(
    project_dir: Path,
    *steward_args: str,
    expect_code: int = 0,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    args = [sys.executable, "-m", STEWARD_MODULE, *steward_args, "--project-dir", str(project_dir)]
    return run_cmd(args, cwd=REPO_ROOT, expect_code=expect_code, env=env)


def run_json(project_dir: Path, *steward_args: str, expect_code: int = 0) -> dict:
    proc = run_steward(project_dir, *steward_args, "--format", "json", expect_code=expect_code)
    return json.loads(proc.stdout)


def init_git_repo(path: Path) -> None:
    run_cmd(["git", "init", "-q"], cwd=path)
    run_cmd(["git", "symbolic-ref", "HEAD", "refs/heads/main"], cwd=path)
    run_cmd(["git", "config", "user.email", "test@example.com"], cwd=path)
    run_cmd(["git", "config", "user.name", "Steward Test"], cwd=path)
    run_cmd(["git", "config", "commit.gpgsign", "false"], cwd=path)


def init_bare_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    run_cmd(["git", "init", "-q", "--bare"], cwd=path)
    run_cmd(["git", "symbolic-ref", "HEAD", "refs/heads/main"], cwd=path)
    return path


def commit_all(path: Path, message: str = "baseline") -> None:
    run_cmd(["git", "add", "."], cwd=path)
    run_cmd(["git", "commit", "-q", "-m", message], cwd=path)


def make_service(
    root: Path,
    name: str,
    entries: int = 0,
    package_json: dict | None = None,
    readme: bool = False,
    agent: dict | None = None,
) -> Path:
    """Create a service dir with optional manifests plus `entries` filler files."""
    service_dir = root / name
    service_dir.mkdir(parents=True, exist_ok=True)
    if package_json is not None:
        (service_dir / "package.json").write_text(json.dumps(package_json, indent=2) + "\n", encoding="utf-8")
    if readme:
        (service_dir / "README.md").write_text(f"# {name}\n", encoding="utf-8")
    if agent is not None:
        (service_dir / "agent.project.json").write_text(json.dumps(agent, indent=2) + "\n", encoding="utf-8")
    for i in range(entries):
        (service_dir / f"file_{i:03d}.txt").write_text("x\n", encoding="utf-8")
    return service_dir


def build_monorepo(project_dir: Path) -> None:
    services = project_dir / "services"
    apps = project_dir / "apps"
    make_service(services, "foo")
    make_service(services, "bar", entries=44, package_json={"name": "bar", "scripts": {"dev": "next dev"}})
    make_service(
        services,
        "baz",
        entries=10,
        package_json={"name": "@old/baz", "scripts": {"dev": "next dev -p 3000", "build": "next build"}},
        readme=True,
    )
    make_service(
        services,
        "wallet",
        entries=20,
        package_json={"name": "wallet", "version": "0.1.0", "scripts": {"dev": "next dev"}},
        readme=True,
        agent={"name": "wallet", "description": "Programmable Wallet", "type": "service", "priority": 2, "port": 4004},
    )
    make_service(apps, "dashboard", entries=3, package_json={"name": "dashboard"})


@pytest.fixture(scope="session")
def monorepo_template(tmp_path_factory: pytest.TempPathFactory) -> Path:
    template_root = tmp_path_factory.mktemp("monorepo_template")
    project_dir = template_root / "proj"
    project_dir.mkdir()
    build_monorepo(project_dir)
    return project_dir


@pytest.fixture()
def monorepo(tmp_path: Path, monorepo_template: Path) -> Path:
    project_dir = tmp_path / "proj"
    shutil.copytree(monorepo_template, project_dir)
    return project_dir


def write_config(project_dir: Path, config: dict) -> Path:
    path = project_dir / "steward_config_v0.json"
    path.write_text(json.dumps({"version": "v0", **config}, indent=2) + "\n", encoding="utf-8")
    return path


def load_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def records_by_name(payload: dict) -> dict[str, dict]:
    return {r["name"]: r for r in payload["records"]}
