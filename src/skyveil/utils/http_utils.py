import random
import uuid
from email.utils import formatdate

import backoff
import requests

from ..config import USER_AGENTS, STORAGE_API_VERSION, DEFAULT_HTTP_TIMEOUT, logger

ACCEPT_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}


def get_session(proxy=None):
    session = requests.Session()
    session.headers.update({'User-Agent': random.choice(USER_AGENTS)})
    if proxy:
        session.proxies = {'http': proxy, 'https': proxy}
    return session


def base_headers():
    return dict(ACCEPT_HEADERS)


def storage_headers(api_version=STORAGE_API_VERSION):
    """Headers for anonymous storage REST calls; request id and date are fresh on every call."""
    headers = base_headers()
    headers.update({
        'x-ms-version': api_version,
        'x-ms-date': formatdate(usegmt=True),
        'x-ms-client-request-id': str(uuid.uuid4()),
    })
    return headers


def _client_error(exc):
    response = getattr(exc, 'response', None)
    return response is not None and 400 <= response.status_code < 500


@backoff.on_exception(backoff.expo, requests.exceptions.RequestException, max_tries=3, jitter=backoff.full_jitter, giveup=_client_error, logger=logger)
def fetch(url, headers=None, timeout=DEFAULT_HTTP_TIMEOUT, proxy=None):
    session = get_session(proxy)
    try:
        response = session.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()
        return response
    finally:
        session.close()
