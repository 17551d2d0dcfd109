import os

import pytest

from skyveil import cli, enumerator
from skyveil.errors import ErrorKind, SetupError
from skyveil.phases.probing import ProbeResult


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ('SKYVEIL_CASES_DIR', 'SKYVEIL_CONCURRENCY', 'SKYVEIL_TIMEOUT', 'SKYVEIL_NAMESERVERS'):
        monkeypatch.delenv(name, raising=False)


def test_old_runtime_is_rejected():
    with pytest.raises(SetupError):
        cli.check_runtime((3, 6, 9))
    cli.check_runtime((3, 12, 0))


def test_subdomains_command_writes_case(monkeypatch, tmp_path):
    calls = []

    def fake_dns_probe(candidate, nameservers=(), timeout=None, lifetime=None):
        calls.append((candidate, nameservers))
        if candidate == "contoso.blob.core.windows.net":
            return ProbeResult(candidate, True, payload=["20.60.1.1"])
        return ProbeResult(candidate, False, error=ErrorKind.NOT_FOUND)

    monkeypatch.setattr(enumerator, 'dns_probe', fake_dns_probe)
    cli.main([
        "subdomains", "-c", " Contoso Case ", "--cases-dir", str(tmp_path),
        "-b", "contoso", "-s", "storage-blob", "-s", "storage-file", "--nameserver", "9.9.9.9", "-t", "3",
    ])

    assert sorted(c for c, _ in calls) == ["contoso.blob.core.windows.net", "contoso.file.core.windows.net"]
    assert all(ns == ("9.9.9.9",) for _, ns in calls)
    with open(os.path.join(str(tmp_path), "contoso_case", "services", "pub-storage-blob.txt")) as f:
        assert f.read() == "contoso.blob.core.windows.net\n"


def test_missing_input_file_exits_before_probing(monkeypatch, tmp_path):
    def fail(*args, **kwargs):
        raise AssertionError("probing must not start")

    monkeypatch.setattr(enumerator, 'dns_probe', fail)
    with pytest.raises(SystemExit) as exc:
        cli.main(["subdomains", "-c", "x", "--cases-dir", str(tmp_path), "--bases-file", str(tmp_path / "nope.txt")])
    assert exc.value.code == 1


def test_unknown_service_is_a_setup_error(tmp_path):
    with pytest.raises(SystemExit) as exc:
        cli.main(["subdomains", "-c", "x", "--cases-dir", str(tmp_path), "-b", "contoso", "-s", "nope"])
    assert exc.value.code == 1


def test_containers_requires_a_source(tmp_path):
    with pytest.raises(SystemExit) as exc:
        cli.main(["containers", "-c", "x", "--cases-dir", str(tmp_path), "-e", "contoso.blob.core.windows.net"])
    assert exc.value.code == 1


def test_containers_rejects_malformed_endpoint(tmp_path):
    wordlist = tmp_path / "names.txt"
    wordlist.write_text("public\n", encoding='utf-8')
    with pytest.raises(SystemExit) as exc:
        cli.main(["containers", "-c", "x", "--cases-dir", str(tmp_path), "-e", "ftp://bad", "-w", str(wordlist)])
    assert exc.value.code == 1


def test_timeout_from_environment_reaches_dns_lookups(monkeypatch, tmp_path):
    timeouts = []

    def fake_dns_probe(candidate, nameservers=(), timeout=None, lifetime=None):
        timeouts.append(timeout)
        return ProbeResult(candidate, False, error=ErrorKind.NOT_FOUND)

    monkeypatch.setenv('SKYVEIL_TIMEOUT', '7')
    monkeypatch.setattr(enumerator, 'dns_probe', fake_dns_probe)
    cli.main(["subdomains", "-c", "x", "--cases-dir", str(tmp_path), "-b", "contoso", "-s", "storage-blob"])
    assert timeouts == [7.0]

    timeouts.clear()
    monkeypatch.delenv('SKYVEIL_TIMEOUT')
    cli.main(["subdomains", "-c", "x", "--cases-dir", str(tmp_path), "-b", "contoso", "-s", "storage-blob"])
    assert timeouts == [2.0]
