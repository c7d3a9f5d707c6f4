from __future__ import annotations

import json
from pathlib import Path

from conftest import load_json, make_service, run_json, run_steward


def test_index_writes_canonical_file(monorepo: Path) -> None:
    run_steward(monorepo, "index")
    index = load_json(monorepo / "projects.index.json")

    assert index["totalApps"] == 1
    assert index["totalServices"] == 4
    assert index["totalProjects"] == 5
    assert [s["name"] for s in index["services"]] == ["bar", "baz", "foo", "wallet"]
    wallet = next(s for s in index["services"] if s["name"] == "wallet")
    assert wallet["path"] == "services/wallet"
    assert wallet["status"] == "scaffolded"
    assert wallet["repository"] == "https://github.com/codai-ecosystem/wallet.git"
    assert wallet["isSubmodule"] is False
    assert wallet["port"] == 4004
    assert index["apps"][0]["name"] == "dashboard"


def test_index_check_reports_current_then_stale(monorepo: Path) -> None:
    run_steward(monorepo, "index")
    current = run_json(monorepo, "index", "--check")
    assert current["status"] == "current"

    make_service(monorepo / "services", "newsvc", entries=1)
    stale = run_json(monorepo, "index", "--check", expect_code=1)
    assert stale["status"] == "stale"

    run_steward(monorepo, "index")
    assert run_json(monorepo, "index", "--check")["status"] == "current"


def test_index_check_fails_when_index_missing(monorepo: Path) -> None:
    payload = run_json(monorepo, "index", "--check", expect_code=1)
    assert payload["status"] == "stale"
    assert "missing" in payload["reason"]
    assert not (monorepo / "projects.index.json").exists()


def test_index_uses_configured_remote_template(monorepo: Path) -> None:
    (monorepo / "steward_config_v0.json").write_text(
        json.dumps({"version": "v0", "organization": "acme", "remote_url_template": "git@example.com:{org}/{name}.git"}),
        encoding="utf-8",
    )
    run_steward(monorepo, "index", "--index-file", "meta/index.json")
    index = load_json(monorepo / "meta" / "index.json")
    assert index["services"][0]["repository"] == "git@example.com:acme/bar.git"
