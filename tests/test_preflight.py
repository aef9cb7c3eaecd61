"""Tests for the startup environment checks."""

import pytest

from mindline.preflight import SKIP_ENV, run_preflight, run_preflight_or_die


def test_skip_env_short_circuits(tmp_path):
    result = run_preflight(env={SKIP_ENV: "1"}, data_dir=tmp_path / "data")
    assert result.ok
    assert SKIP_ENV in result.message


def test_missing_display_fails(tmp_path):
    result = run_preflight(env={}, data_dir=tmp_path, check_deps=False)
    assert not result.ok
    assert "graphical session" in result.message


@pytest.mark.parametrize("var", ["DISPLAY", "WAYLAND_DISPLAY"])
def test_display_and_writable_data_dir_pass(tmp_path, var):
    data_dir = tmp_path / "nested" / "mindline"
    result = run_preflight(env={var: ":0"}, data_dir=data_dir, check_deps=False)
    assert result.ok, result.message
    assert data_dir.is_dir()


def test_display_not_required_at_install_time(tmp_path):
    result = run_preflight(require_display=False, check_deps=False,
                           env={}, data_dir=tmp_path)
    assert result.ok


def test_unusable_data_dir_fails(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    result = run_preflight(env={"DISPLAY": ":0"}, data_dir=blocker / "sub",
                           check_deps=False)
    assert not result.ok
    assert "data directory" in result.message


def test_or_die_exits_on_failure(monkeypatch, capsys):
    monkeypatch.delenv(SKIP_ENV, raising=False)
    monkeypatch.delenv("DISPLAY", raising=False)
    monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
    with pytest.raises(SystemExit) as excinfo:
        run_preflight_or_die(check_deps=False)
    assert excinfo.value.code == 1
    assert "preflight check failed" in capsys.readouterr().err


def test_or_die_returns_when_skipped(monkeypatch):
    monkeypatch.setenv(SKIP_ENV, "1")
    assert run_preflight_or_die() is None
