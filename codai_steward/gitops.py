"""
Thin wrappers around the `git` CLI.

Every call returns a result mapping instead of raising, so callers can record
the outcome and move on to the next service.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any


DEFAULT_GIT_TIMEOUT_SECONDS = 30.0
DEFAULT_REMOTE_URL_TEMPLATE = "https://github.com/{org}/{name}.git"


def run_git(args: list[str], cwd: Path, timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> dict[str, Any]:
    cmd = ["git", *args]
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return {
            "ok": False,
            "returncode": None,
            "stdout": "",
            "stderr": "",
            "detail": f"timed out after {timeout:g}s: {' '.join(cmd)}",
        }
    except OSError as exc:
        return {"ok": False, "returncode": None, "stdout": "", "stderr": "", "detail": f"git unavailable: {exc}"}

    detail = ""
    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout).strip() or f"git {args[0]} exited {proc.returncode}"
    return {
        "ok": proc.returncode == 0,
        "returncode": proc.returncode,
        "stdout": proc.stdout,
        "stderr": proc.stderr,
        "detail": detail,
    }


def conventional_remote_url(name: str, organization: str, template: str = DEFAULT_REMOTE_URL_TEMPLATE) -> str:
    return template.format(org=organization, name=name)


def is_git_checkout(path: Path) -> bool:
    # Submodule checkouts carry a `.git` file rather than a directory.
    return (path / ".git").exists()


def origin_url(repo_dir: Path, timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> str | None:
    res = run_git(["remote", "get-url", "origin"], cwd=repo_dir, timeout=timeout)
    if not res["ok"]:
        return None
    url = res["stdout"].strip()
    return url or None


def ls_remote_refs(url: str, cwd: Path, timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS, heads_only: bool = False) -> tuple[list[str] | None, str | None]:
    args = ["ls-remote"]
    if heads_only:
        args.append("--heads")
    args.append(url)
    res = run_git(args, cwd=cwd, timeout=timeout)
    if not res["ok"]:
        return None, res["detail"]
    refs = [line.split("\t", 1)[-1] for line in res["stdout"].splitlines() if line.strip()]
    return refs, None


def porcelain_status(repo_dir: Path, timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> tuple[list[str], str | None]:
    res = run_git(["status", "--porcelain"], cwd=repo_dir, timeout=timeout)
    if not res["ok"]:
        return [], res["detail"] or "git status failed"

    files: list[str] = []
    for raw in res["stdout"].splitlines():
        if len(raw) < 4:
            continue
        path = raw[3:]
        if " -> " in path:
            path = path.split(" -> ", 1)[1]
        files.append(path.strip())
    return files, None


def tracked_files(repo_dir: Path, pathspec: str, timeout: float = DEFAULT_GIT_TIMEOUT_SECONDS) -> list[str]:
    res = run_git(["ls-files", "--", pathspec], cwd=repo_dir, timeout=timeout)
    if not res["ok"]:
        return []
    return [line.strip() for line in res["stdout"].splitlines() if line.strip()]
