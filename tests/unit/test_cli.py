"""Tests for the command line entry point."""

import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import ScriptedProvider, posting_data

import main
from internflow.core.db import fetch_records, init_db, insert_records
from internflow.core.schemas import JobRecord, LifecycleState


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "owner_id: owner-1\n"
        f"database:\n  path: {tmp_path / 'cli.db'}\n"
        "candidate:\n  name: Alex\n  undergrad: Example University\n  master: NUS\n"
    )
    return path


@pytest.fixture()
def cli_seed(tmp_path: Path) -> Callable[..., list[str]]:
    def _seed(count: int = 1, **fields: object) -> list[str]:
        conn = init_db(tmp_path / "cli.db")
        records = [
            JobRecord(
                id=f"tmp-{i}", owner_id="owner-1", company=f"Company {i}", position="Intern",
                email=f"hr{i}@example.com", email_subject=f"Subject {i}", **fields,  # type: ignore[arg-type]
            )
            for i in range(count)
        ]
        ids = insert_records(conn, "owner-1", records)
        conn.close()
        return ids

    return _seed


def _records(tmp_path: Path) -> list[JobRecord]:
    conn = init_db(tmp_path / "cli.db")
    try:
        return fetch_records(conn, "owner-1")
    finally:
        conn.close()


def _run(*argv: str) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main.main(list(argv))
    return int(exc_info.value.code or 0)


class TestParseArgs:
    def test_parse_defaults(self) -> None:
        args = main.parse_args(["parse"])
        assert args.input is None
        assert args.config == "config/settings.yaml"
        assert args.discard_partial is False

    def test_status_choices(self) -> None:
        with pytest.raises(SystemExit):
            main.parse_args(["status", "archived", "abc"])


class TestCommands:
    def test_missing_config(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run("list", "--config", str(tmp_path / "nope.yaml")) == 1
        assert "Error loading config" in capsys.readouterr().err

    def test_list(
        self, config_path: Path, cli_seed: Callable[..., list[str]],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        cli_seed(count=2)
        assert _run("list", "--config", str(config_path)) == 0
        out = capsys.readouterr().out
        assert "Company 0 / Intern <hr0@example.com>" in out
        assert "2 record(s)" in out

    def test_status_by_prefix(
        self, config_path: Path, cli_seed: Callable[..., list[str]], tmp_path: Path,
    ) -> None:
        (rid,) = cli_seed()
        assert _run("status", "sent", rid[:8], "--config", str(config_path)) == 0
        assert _records(tmp_path)[0].status is LifecycleState.SENT

    def test_unknown_prefix(
        self, config_path: Path, cli_seed: Callable[..., list[str]],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        cli_seed()
        assert _run("status", "sent", "zzzz-no-such", "--config", str(config_path)) == 1
        assert "matches no record" in capsys.readouterr().err

    def test_delete_soft_then_hard(
        self, config_path: Path, cli_seed: Callable[..., list[str]], tmp_path: Path,
    ) -> None:
        (rid,) = cli_seed()
        assert _run("delete", rid, "--config", str(config_path)) == 0
        assert _records(tmp_path)[0].status is LifecycleState.FILTERED

        assert _run("delete", rid, "--config", str(config_path)) == 1
        assert _run("delete", rid, "--yes", "--config", str(config_path)) == 0
        assert _records(tmp_path) == []

    def test_renumber(
        self, config_path: Path, cli_seed: Callable[..., list[str]], tmp_path: Path,
    ) -> None:
        cli_seed(count=3)
        assert _run("renumber", "--config", str(config_path)) == 0
        assert [r.ordinal for r in _records(tmp_path)] == [1, 2, 3]

    def test_parse_from_file(
        self, config_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ) -> None:
        posts = tmp_path / "posts.txt"
        posts.write_text("Acme hiring interns, hr@acme.com")
        provider = ScriptedProvider(json.dumps([posting_data(), posting_data(company="Beta")]))

        with patch("internflow.llm.get_provider", return_value=provider):
            code = _run("parse", str(posts), "--source", "forum", "--config", str(config_path))

        assert code == 0
        out = capsys.readouterr().out
        assert "[+] Acme / Strategy Intern <hr@acme.com>" in out
        assert "2 record(s) extracted." in out
        records = _records(tmp_path)
        assert [r.company for r in records] == ["Acme", "Beta"]
        assert [r.ordinal for r in records] == [1, 2]
        assert all(r.source == "forum" for r in records)
