"""
Tests for the command line.

Each test runs against a fresh database under the isolated SHOPCLOCK_HOME.
"""

import pytest

from cli import main as cli


@pytest.fixture(autouse=True)
def fresh_service():
    cli.reset_service()
    yield
    cli.reset_service()


def run(capsys, *argv) -> tuple[int, str]:
    code = cli.main(list(argv))
    return code, capsys.readouterr().out


class TestCli:
    def test_help_without_args(self, capsys):
        code, out = run(capsys)
        assert code == 0
        assert "COMMANDS" in out

    def test_unknown_command(self, capsys):
        code, out = run(capsys, "dance")
        assert code == 1
        assert "Unknown command" in out

    def test_init_creates_database(self, capsys, isolated_home):
        code, out = run(capsys, "init")
        assert code == 0
        assert (isolated_home / "data" / "shopclock.db").exists()
        assert "Grace period:  15 min" in out

    def test_clock_in_out_and_reports(self, capsys):
        assert run(capsys, "in", "2024-03-04T08:00")[0] == 0
        code, out = run(capsys, "status")
        assert "clocked_in" in out

        # A new process restores the open session from the store.
        cli.reset_service()
        code, out = run(capsys, "out", "2024-03-04T16:30")
        assert code == 0
        assert "8.5 hrs" in out

        code, out = run(capsys, "day", "2024-03-04")
        assert "8.5 hrs" in out

        code, out = run(capsys, "week", "2024-03-06")
        assert "WEEK OF 2024-03-04" in out
        assert "Total: 8.5 hrs" in out

        code, out = run(capsys, "message", "2024-03-04")
        assert out.strip() == "My hours for week of 3/4/2024: 8.5"

        code, out = run(capsys, "history")
        assert "2024-03-04" in out

    def test_in_twice(self, capsys):
        run(capsys, "in", "2024-03-04T08:00")
        code, out = run(capsys, "in", "2024-03-04T09:00")
        assert code == 0
        assert "Already clocked in" in out

    def test_out_when_clocked_out(self, capsys):
        code, out = run(capsys, "out")
        assert "Not clocked in" in out

    def test_add_and_bad_input(self, capsys):
        code, out = run(capsys, "add", "2024-03-01T08:00", "2024-03-01T12:00")
        assert code == 0
        assert "4.0 hrs" in out

        code, out = run(capsys, "add", "2024-03-01T12:00", "2024-03-01T08:00")
        assert code == 1
        assert "clock out must be after clock in" in out

        code, out = run(capsys, "day", "March first")
        assert code == 1

    def test_gap_commands_unknown_id(self, capsys):
        code, out = run(capsys, "gap-delete", "missing")
        assert code == 1
        assert "gap not found" in out
        code, out = run(capsys, "gap-restore")
        assert "Usage" in out

    def test_out_before_clock_in_rejected(self, capsys):
        run(capsys, "in", "2024-03-04T08:00")
        code, out = run(capsys, "out", "2024-03-04T07:00")
        assert code == 1
        assert "clock out cannot be before the session started" in out
        code, out = run(capsys, "status")
        assert "clocked_in" in out
