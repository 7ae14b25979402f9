import subprocess

from hostnet.adapters.host import LocalHost


def test_os_errors_become_failed_results(monkeypatch) -> None:
    def denied(*args, **kwargs):
        raise PermissionError("Permission denied")

    monkeypatch.setattr(subprocess, "run", denied)
    result = LocalHost().run(["ping", "-c", "1", "10.1.41.1"])
    assert not result.ok
    assert result.rc == 126
    assert "Permission denied" in result.stderr


def test_missing_binary(monkeypatch) -> None:
    def missing(*args, **kwargs):
        raise FileNotFoundError("nmcli")

    monkeypatch.setattr(subprocess, "run", missing)
    assert LocalHost().run(["nmcli", "connection", "show"]).rc == 127
