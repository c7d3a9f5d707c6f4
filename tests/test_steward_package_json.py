from __future__ import annotations

from pathlib import Path

from conftest import init_git_repo, load_json, make_service, run_cmd, run_json, run_steward, write_config


def test_assign_ports_rewrites_next_dev_scripts(monorepo: Path) -> None:
    payload = run_json(monorepo, "assign-ports")
    by_target = {r["target"]: r for r in payload["results"]}

    wallet = load_json(monorepo / "services" / "wallet" / "package.json")
    assert wallet["scripts"]["dev"] == "next dev -p 4004"
    baz = load_json(monorepo / "services" / "baz" / "package.json")
    assert baz["scripts"]["dev"] == "next dev -p 4031"
    assert baz["scripts"]["build"] == "next build"
    bar = load_json(monorepo / "services" / "bar" / "package.json")
    assert bar["scripts"]["dev"] == "next dev -p 4030"

    # Catalog ports run 4000-4028; uncatalogued services take the next free ones in path order.
    assert by_target["services/foo"]["status"] == "skipped"
    assert by_target["services/foo"]["detail"] == "no package.json"
    assert by_target["apps/dashboard"]["detail"] == "no next dev script"

    mapping = load_json(monorepo / "PORT_ASSIGNMENTS.json")
    assert mapping == {"services/bar": 4030, "services/baz": 4031, "services/wallet": 4004}


def test_assign_ports_second_run_skips(monorepo: Path) -> None:
    run_json(monorepo, "assign-ports")
    again = run_json(monorepo, "assign-ports", "--services", "wallet")
    assert again["results"][0]["status"] == "skipped"
    assert again["results"][0]["detail"] == "already on port 4004"


def test_assign_ports_reports_malformed_package_json(monorepo: Path) -> None:
    (monorepo / "services" / "bar" / "package.json").write_text("{", encoding="utf-8")
    payload = run_json(monorepo, "assign-ports", expect_code=1)
    assert payload["status"] == "fail"
    failed = [r for r in payload["results"] if r["status"] == "failed"]
    assert [r["target"] for r in failed] == ["services/bar"]
    assert load_json(monorepo / "services" / "wallet" / "package.json")["scripts"]["dev"] == "next dev -p 4004"


def test_rename_packages_uses_template(monorepo: Path) -> None:
    payload = run_json(monorepo, "rename-packages", "--services", "baz,wallet")
    assert payload["counts"]["ok"] == 2
    baz = load_json(monorepo / "services" / "baz" / "package.json")
    assert baz["name"] == "@codai/baz-service"
    assert list(baz)[:2] == ["name", "scripts"]

    again = run_json(monorepo, "rename-packages", "--services", "baz")
    assert again["results"][0]["status"] == "skipped"


def test_rename_packages_template_from_config_and_flag(monorepo: Path) -> None:
    write_config(monorepo, {"organization": "acme", "package_name_template": "@{org}/{name}"})
    run_json(monorepo, "rename-packages", "--services", "wallet")
    assert load_json(monorepo / "services" / "wallet" / "package.json")["name"] == "@acme/wallet"

    run_json(monorepo, "rename-packages", "--services", "wallet", "--name-template", "{name}-app")
    assert load_json(monorepo / "services" / "wallet" / "package.json")["name"] == "wallet-app"


def test_gitignore_creates_and_merges(monorepo: Path) -> None:
    (monorepo / "services" / "baz" / ".gitignore").write_text("# mine\nsecrets/\nnode_modules\n", encoding="utf-8")
    payload = run_json(monorepo, "gitignore", "--services", "baz,wallet")
    by_target = {r["target"]: r for r in payload["results"]}
    assert by_target["services/wallet/.gitignore"]["detail"] == "created"
    assert by_target["services/baz/.gitignore"]["detail"] == "updated"

    merged = (monorepo / "services" / "baz" / ".gitignore").read_text(encoding="utf-8")
    assert "# Custom entries from existing .gitignore\nsecrets/" in merged
    assert "dist/" in merged
    assert "# mine" not in merged

    again = run_json(monorepo, "gitignore", "--services", "baz,wallet")
    assert again["counts"] == {"ok": 0, "skipped": 2, "failed": 0}


def test_gitignore_untracks_node_modules(tmp_path: Path) -> None:
    project_dir = tmp_path / "proj"
    service_dir = make_service(project_dir / "services", "web", entries=1)
    (service_dir / "node_modules" / "left-pad").mkdir(parents=True)
    (service_dir / "node_modules" / "left-pad" / "index.js").write_text("module.exports = 1;\n", encoding="utf-8")
    init_git_repo(service_dir)
    run_cmd(["git", "add", "."], cwd=service_dir)
    run_cmd(["git", "commit", "-q", "-m", "with deps"], cwd=service_dir)

    payload = run_json(project_dir, "gitignore", "--untrack-node-modules")
    untrack = [r for r in payload["results"] if r["operation"] == "untrack-node-modules"]
    assert untrack and untrack[0]["status"] == "ok"
    tracked = run_cmd(["git", "ls-files", "node_modules"], cwd=service_dir).stdout
    assert tracked.strip() == ""
    assert (service_dir / "node_modules" / "left-pad" / "index.js").exists()


def test_assign_ports_filtered_runs_never_share_a_port(tmp_path: Path) -> None:
    project_dir = tmp_path / "proj"
    for name in ("alpha", "beta"):
        make_service(project_dir / "services", name, package_json={"name": name, "scripts": {"dev": "next dev"}})

    run_json(project_dir, "assign-ports", "--services", "alpha")
    run_json(project_dir, "assign-ports", "--services", "beta")
    alpha = load_json(project_dir / "services" / "alpha" / "package.json")["scripts"]["dev"]
    beta = load_json(project_dir / "services" / "beta" / "package.json")["scripts"]["dev"]
    assert alpha == "next dev -p 4029"
    assert beta == "next dev -p 4030"
    assert load_json(project_dir / "PORT_ASSIGNMENTS.json") == {"services/alpha": 4029, "services/beta": 4030}

    # A new service sorting first must not take a port already handed out.
    make_service(project_dir / "services", "aaa", package_json={"name": "aaa", "scripts": {"dev": "next dev"}})
    payload = run_json(project_dir, "assign-ports")
    by_target = {r["target"]: r for r in payload["results"]}
    assert by_target["services/aaa"]["detail"] == "port 4031"
    assert by_target["services/alpha"]["detail"] == "already on port 4029"
    assert by_target["services/beta"]["detail"] == "already on port 4030"


def test_rename_packages_rejects_unknown_placeholder(monorepo: Path) -> None:
    proc = run_steward(monorepo, "rename-packages", "--name-template", "@codai/{service}", expect_code=1)
    assert proc.stderr.startswith("error: invalid --name-template '@codai/{service}'")
    assert "Traceback" not in proc.stderr
    assert load_json(monorepo / "services" / "baz" / "package.json")["name"] == "@old/baz"


def test_config_name_template_with_unknown_placeholder_is_a_config_error(monorepo: Path) -> None:
    write_config(monorepo, {"package_name_template": "@codai/{service}-svc"})
    proc = run_steward(monorepo, "scaffold", "--services", "codai", expect_code=1)
    assert proc.stderr.startswith("error: invalid package_name_template")
    assert "Traceback" not in proc.stderr
    assert not (monorepo / "services" / "codai").exists()
