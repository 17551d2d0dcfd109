import time

import pytest
import requests

from skyveil.utils.http_utils import fetch, storage_headers


@pytest.fixture
def calls(monkeypatch):
    monkeypatch.setattr(time, 'sleep', lambda seconds: None)
    return []


def respond_with(monkeypatch, calls, status):
    def fake_get(self, url, **kwargs):
        calls.append(url)
        response = requests.Response()
        response.status_code = status
        response.url = url
        response._content = b"body"
        return response

    monkeypatch.setattr(requests.Session, 'get', fake_get)


def test_server_errors_are_retried_three_times(monkeypatch, calls):
    respond_with(monkeypatch, calls, 503)
    with pytest.raises(requests.HTTPError):
        fetch("https://acct1.blob.core.windows.net/public/a.txt")
    assert len(calls) == 3


def test_client_errors_are_not_retried(monkeypatch, calls):
    respond_with(monkeypatch, calls, 404)
    with pytest.raises(requests.HTTPError):
        fetch("https://acct1.blob.core.windows.net/public/a.txt")
    assert len(calls) == 1


def test_transport_errors_are_retried(monkeypatch, calls):
    def refuse(self, url, **kwargs):
        calls.append(url)
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(requests.Session, 'get', refuse)
    with pytest.raises(requests.ConnectionError):
        fetch("https://acct1.blob.core.windows.net/public/a.txt")
    assert len(calls) == 3


def test_success_returns_the_response(monkeypatch, calls):
    respond_with(monkeypatch, calls, 200)
    assert fetch("https://acct1.blob.core.windows.net/public/a.txt").content == b"body"
    assert len(calls) == 1


def test_storage_headers_are_fresh_per_call():
    first, second = storage_headers(), storage_headers()
    assert first['x-ms-version'] == second['x-ms-version']
    assert first['x-ms-client-request-id'] != second['x-ms-client-request-id']
    assert first['x-ms-date'].endswith("GMT")
