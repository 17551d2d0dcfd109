import pytest

from skyveil.config import load_settings
from skyveil.errors import SetupError
from skyveil.utils.input_utils import (
    read_wordlist, resolve_values, read_storage_csv, RowByValue, RowByEndpointContainer,
)


def test_read_wordlist_skips_comments_and_blanks(tmp_path):
    path = tmp_path / "bases.txt"
    path.write_text("# targets\ncontoso\n\n  fabrikam  \n#old\n", encoding='utf-8')
    assert read_wordlist(str(path)) == ["contoso", "fabrikam"]


def test_missing_input_file_is_a_setup_error(tmp_path):
    with pytest.raises(SetupError):
        read_wordlist(str(tmp_path / "missing.txt"))
    with pytest.raises(SetupError):
        read_storage_csv(str(tmp_path / "missing.csv"))


def test_resolve_values_merges_literals_and_file(tmp_path):
    path = tmp_path / "more.txt"
    path.write_text("fabrikam\n", encoding='utf-8')
    assert resolve_values([" contoso ", ""], str(path)) == ["contoso", "fabrikam"]
    assert resolve_values(["contoso"]) == ["contoso"]


def test_storage_csv_rows_by_value_and_by_endpoint(tmp_path):
    path = tmp_path / "containers.csv"
    path.write_text(
        "Value,Endpoint,StorageAccount,Container\n"
        "https://acct1.blob.core.windows.net/cont1/,acct1.blob.core.windows.net,acct1,cont1\n"
        ",acct2.blob.core.windows.net,acct2,cont2\n"
        "https://acct3.blob.core.windows.net/cont3/,,,\n"
        ",,,\n"
        "not a url,,,\n",
        encoding='utf-8',
    )
    rows = read_storage_csv(str(path))
    assert [type(r) for r in rows] == [RowByEndpointContainer, RowByEndpointContainer, RowByValue]
    assert [r.url for r in rows] == [
        "https://acct1.blob.core.windows.net/cont1",
        "https://acct2.blob.core.windows.net/cont2",
        "https://acct3.blob.core.windows.net/cont3",
    ]
    assert rows[2].endpoint == "acct3.blob.core.windows.net"
    assert rows[2].container == "cont3"


def test_storage_csv_without_required_columns_is_fatal(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("Endpoint,Account\nacct1.blob.core.windows.net,acct1\n", encoding='utf-8')
    with pytest.raises(SetupError):
        read_storage_csv(str(path))


def test_download_csv_requires_blob_names(tmp_path):
    path = tmp_path / "blobs.csv"
    path.write_text(
        "Endpoint,Container,BlobName,VersionId\n"
        "acct1.blob.core.windows.net,public,docs/a.txt,\n"
        "acct1.blob.core.windows.net,public,,\n"
        "acct1.blob.core.windows.net,public,b.txt,2024-01-01T00:00:00Z\n",
        encoding='utf-8',
    )
    rows = read_storage_csv(str(path), require_blob=True)
    assert [(r.blob_name, r.version_id) for r in rows] == [
        ("docs/a.txt", None),
        ("b.txt", "2024-01-01T00:00:00Z"),
    ]

    no_blob_column = tmp_path / "containers.csv"
    no_blob_column.write_text("Endpoint,Container\nacct1.blob.core.windows.net,public\n", encoding='utf-8')
    with pytest.raises(SetupError):
        read_storage_csv(str(no_blob_column), require_blob=True)


def test_load_settings_from_environment(monkeypatch):
    monkeypatch.setenv('SKYVEIL_CASES_DIR', '/tmp/cases')
    monkeypatch.setenv('SKYVEIL_CONCURRENCY', '25')
    monkeypatch.setenv('SKYVEIL_NAMESERVERS', '1.1.1.1, 8.8.8.8')
    monkeypatch.delenv('SKYVEIL_TIMEOUT', raising=False)
    settings = load_settings()
    assert settings['cases_dir'] == '/tmp/cases'
    assert settings['concurrency'] == 25
    assert settings['timeout'] is None
    assert settings['nameservers'] == ['1.1.1.1', '8.8.8.8']

    monkeypatch.setenv('SKYVEIL_CONCURRENCY', 'lots')
    with pytest.raises(SetupError):
        load_settings()


def test_row_with_unparseable_endpoint_is_skipped(tmp_path):
    path = tmp_path / "containers.csv"
    path.write_text(
        "Endpoint,Container\n"
        "acct1.blob.core.windows.net,good\n"
        "acct2.blob.core.windows.net:99999,bad\n"
        "https://[::1,bad\n",
        encoding='utf-8',
    )
    rows = read_storage_csv(str(path))
    assert [r.url for r in rows] == ["https://acct1.blob.core.windows.net/good"]
