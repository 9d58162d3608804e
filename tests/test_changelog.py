import subprocess

import pytest

from minori.changelog import ChangelogError, Commit, build_changelog, parse_log, read_commits
from minori.pages import BUNDLED_THEMES
from minori.render import make_environment

LOG_OUTPUT = (
    "aaaa1111\x1faaaa111\x1fAdd intro note\x1fAlice\x1f2021-01-02 10:00:00 +0000\x1e\n"
    "bbbb2222\x1fbbbb222\x1fFix typo\x1fBob\x1f2021-01-01 09:00:00 +0000\x1e\n"
)


def test_parse_log():
    commits = parse_log(LOG_OUTPUT)
    assert commits == [
        Commit("aaaa1111", "aaaa111", "Add intro note", "Alice", "2021-01-02 10:00:00 +0000"),
        Commit("bbbb2222", "bbbb222", "Fix typo", "Bob", "2021-01-01 09:00:00 +0000"),
    ]


def test_parse_log_rejects_broken_records():
    with pytest.raises(ChangelogError):
        parse_log("only\x1ftwo\x1e")


def test_read_commits_runs_git_log(monkeypatch, tmp_path):
    seen = {}

    def fake_run(cmd, **kwargs):
        seen["cmd"] = cmd
        return subprocess.CompletedProcess(cmd, 0, stdout=LOG_OUTPUT, stderr="")

    monkeypatch.setattr("minori.changelog.subprocess.run", fake_run)
    commits = read_commits(tmp_path, 5)
    assert len(commits) == 2
    assert seen["cmd"][:4] == ["git", "-C", str(tmp_path), "log"]
    assert "--max-count=5" in seen["cmd"]


def test_read_commits_failure(monkeypatch, tmp_path):
    monkeypatch.setattr(
        "minori.changelog.subprocess.run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 128, stdout="", stderr="fatal: not a git repository"),
    )
    with pytest.raises(ChangelogError, match="not a git repository"):
        read_commits(tmp_path, 5)


def test_build_changelog_renders_commits(make_config, tmp_path):
    env = make_environment(BUNDLED_THEMES / "default")
    path = build_changelog(env, make_config(log=True), reader=lambda repo, n: parse_log(LOG_OUTPUT))
    assert path == tmp_path / "site" / "changelog" / "index.html"
    html = path.read_text(encoding="utf-8")
    assert "Add intro note" in html
    assert "aaaa111" in html


def test_build_changelog_renders_empty_list_when_history_unavailable(make_config, capsys):
    def reader(repo, n):
        raise ChangelogError("git command not found")

    env = make_environment(BUNDLED_THEMES / "default")
    path = build_changelog(env, make_config(log=True), reader=reader)
    assert "No history available." in path.read_text(encoding="utf-8")
    assert "git command not found" in capsys.readouterr().err
