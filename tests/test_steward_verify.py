from __future__ import annotations

from pathlib import Path

from conftest import init_git_repo, run_cmd, run_json, run_steward


def test_verify_reports_connection_state_per_catalog_repository(monorepo: Path) -> None:
    wallet = monorepo / "services" / "wallet"
    init_git_repo(wallet)
    run_cmd(["git", "remote", "add", "origin", "https://example.invalid/wallet.git"], cwd=wallet)

    payload = run_json(monorepo, "verify")
    repos = {r["name"]: r for r in payload["repositories"]}

    assert len(repos) == 29
    assert repos["wallet"]["connection"] == "linked"
    assert repos["codai"]["connection"] == "missing"
    assert repos["codai"]["path"] == "services/codai"
    assert payload["summary"]["total"] == 29
    assert payload["summary"]["connected"] == 1
    assert payload["summary"]["by_connection"]["missing"] == 28


def test_verify_filters_and_detects_submodules(monorepo: Path) -> None:
    wallet = monorepo / "services" / "wallet"
    init_git_repo(wallet)
    (monorepo / ".gitmodules").write_text(
        '[submodule "services/wallet"]\n\tpath = services/wallet\n\turl = https://example.invalid/wallet.git\n',
        encoding="utf-8",
    )
    payload = run_json(monorepo, "verify", "--services", "wallet", "--no-remotes")
    assert [r["name"] for r in payload["repositories"]] == ["wallet"]
    assert payload["repositories"][0]["connection"] == "submodule"
    assert payload["summary"]["completion_percent"] == 100


def test_verify_local_only_and_issue_list(monorepo: Path) -> None:
    payload = run_json(monorepo, "verify", "--services", "wallet", "--no-remotes")
    assert payload["repositories"][0]["connection"] == "local-only"
    assert payload["issues"] == ["services/wallet: has package.json but no git repository"]


def test_verify_fail_on_incomplete(monorepo: Path) -> None:
    run_steward(monorepo, "verify", "--services", "wallet,codai", "--no-remotes", "--fail-on-incomplete", expect_code=1)
    proc = run_steward(monorepo, "verify", "--services", "codai", "--no-remotes")
    assert "missing" in proc.stdout
    assert "connected: 0/1" in proc.stdout
