import sys
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from itertools import islice
from typing import Any, List, Optional
from urllib.parse import quote
from xml.etree import ElementTree

import dns.exception
import dns.resolver
import requests

from ..config import logger, DEFAULT_CONCURRENCY, DEFAULT_DNS_TIMEOUT, DEFAULT_DNS_LIFETIME, DEFAULT_HTTP_TIMEOUT
from ..errors import ErrorKind
from ..utils.dns_utils import build_resolver, describe_answer
from ..utils.http_utils import get_session, fetch

MAX_LISTING_PAGES = 50


@dataclass
class ProbeResult:
    candidate: str
    succeeded: bool
    payload: Any = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None
    # Caller-supplied context carried through the pool untouched (service id, endpoint, ...)
    tag: Any = None


@dataclass
class ProbeBatch:
    succeeded: List[ProbeResult] = field(default_factory=list)
    failed: List[ProbeResult] = field(default_factory=list)

    @property
    def infrastructure_failures(self):
        return [r for r in self.failed if r.error is ErrorKind.INFRASTRUCTURE]

    @property
    def total(self):
        return len(self.succeeded) + len(self.failed)


def _run_one(probe, candidate, tag):
    try:
        result = probe(candidate)
    except Exception as e:
        # A misbehaving probe only loses its own candidate
        return ProbeResult(candidate, False, error=ErrorKind.UNEXPECTED, detail=f"{type(e).__name__}: {e}", tag=tag)
    result.tag = tag
    return result


def _submit(executor, probe, item):
    tag, candidate = item if isinstance(item, tuple) else (None, item)
    return executor.submit(_run_one, probe, candidate, tag)


def run_probes(candidates, probe, concurrency=DEFAULT_CONCURRENCY, label="probe", verbose=False, total=None):
    """
    Runs probe(candidate) for every candidate with at most `concurrency` in flight.

    `candidates` is an iterable of plain candidate strings or (tag, candidate) pairs; the tag
    comes back on the ProbeResult. The pool is a sliding window: candidates are pulled from the
    iterable only as workers free up, so a lazy generator is never materialised. Failures never
    raise, they land in ProbeBatch.failed. Probes finish in any order; both lists are returned
    in submission order.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    if total is None and hasattr(candidates, '__len__'):
        total = len(candidates)

    succeeded = []
    failed = []
    queue = enumerate(candidates)
    completed_tasks = 0
    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        pending = {}
        for index, item in islice(queue, concurrency):
            pending[_submit(executor, probe, item)] = index

        while pending:
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                index = pending.pop(future)
                completed_tasks += 1
                result = future.result()
                if result.succeeded:
                    succeeded.append((index, result))
                    logger.debug(f" [+] {label} hit: {result.candidate}")
                else:
                    failed.append((index, result))
                    logger.debug(f" [-] {label} miss: {result.candidate} ({result.error.value}) {result.detail or ''}")

                if verbose and completed_tasks % 50 == 0:
                    progress = f"{(completed_tasks / total) * 100:.2f}% " if total else ""
                    sys.stdout.write(f"\r [.] {label} progress: {progress}({completed_tasks}/{total or '?'}) - Succeeded: {len(succeeded)}")
                    sys.stdout.flush()

            for next_index, item in islice(queue, len(done)):
                pending[_submit(executor, probe, item)] = next_index

    batch = ProbeBatch(
        succeeded=[r for _, r in sorted(succeeded, key=lambda pair: pair[0])],
        failed=[r for _, r in sorted(failed, key=lambda pair: pair[0])],
    )
    sys.stdout.write(f"\r[*] {label} completed: {completed_tasks} checked, {len(batch.succeeded)} succeeded.\n")
    sys.stdout.flush()

    infra = batch.infrastructure_failures
    if infra:
        logger.warning(f" [!!!] {len(infra)} {label} lookups failed to reach the resolver (e.g. {infra[0].candidate}). "
                       f"Results for this batch may be incomplete; check resolver configuration.")
    return batch


def dns_probe(candidate, nameservers=(), timeout=DEFAULT_DNS_TIMEOUT, lifetime=DEFAULT_DNS_LIFETIME):
    resolver = build_resolver(nameservers, timeout, lifetime)
    try:
        answer = resolver.resolve(candidate, 'A')
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.YXDOMAIN):
        return ProbeResult(candidate, False, error=ErrorKind.NOT_FOUND)
    except dns.resolver.NoNameservers as e:
        return ProbeResult(candidate, False, error=ErrorKind.INFRASTRUCTURE, detail=str(e))
    except dns.exception.Timeout as e:
        return ProbeResult(candidate, False, error=ErrorKind.TIMEOUT, detail=str(e))
    except OSError as e:
        return ProbeResult(candidate, False, error=ErrorKind.INFRASTRUCTURE, detail=str(e))
    except dns.exception.DNSException as e:
        return ProbeResult(candidate, False, error=ErrorKind.TRANSPORT, detail=str(e))

    addresses = [str(record) for record in answer]
    if not addresses:
        return ProbeResult(candidate, False, error=ErrorKind.NOT_FOUND)
    return ProbeResult(candidate, True, payload=addresses, detail=describe_answer(answer))


def _response_payload(response):
    return {
        'status': response.status_code,
        'headers': dict(response.headers),
        'text': response.text,
        'url': response.url,
    }


def http_probe(url, headers=None, timeout=DEFAULT_HTTP_TIMEOUT, method="GET", proxy=None):
    session = get_session(proxy)
    try:
        response = session.request(method, url, headers=headers, timeout=timeout)
    except requests.exceptions.Timeout as e:
        return ProbeResult(url, False, error=ErrorKind.TIMEOUT, detail=str(e))
    except requests.exceptions.RequestException as e:
        return ProbeResult(url, False, error=ErrorKind.TRANSPORT, detail=f"{type(e).__name__} - {e}")
    finally:
        session.close()

    if not 200 <= response.status_code < 300:
        return ProbeResult(url, False, error=ErrorKind.HTTP_STATUS, detail=str(response.status_code))
    return ProbeResult(url, True, payload=_response_payload(response))


def _next_marker(body):
    try:
        root = ElementTree.fromstring(body.lstrip('\ufeff'))
    except ElementTree.ParseError:
        return None
    marker = root.findtext('NextMarker')
    return marker.strip() if marker and marker.strip() else None


def container_listing_probe(url, headers_factory, timeout=DEFAULT_HTTP_TIMEOUT, include_versions=False,
                            max_pages=MAX_LISTING_PAGES, proxy=None):
    """
    Lists an anonymously readable container, following NextMarker pages.

    headers_factory is called once per page so every request carries its own date and
    request id. Payload is the list of raw XML page bodies.
    """
    list_url = f"{url}?restype=container&comp=list"
    if include_versions:
        list_url += "&include=versions"

    pages = []
    marker = None
    while len(pages) < max_pages:
        page_url = f"{list_url}&marker={quote(marker, safe='')}" if marker else list_url
        result = http_probe(page_url, headers=headers_factory(), timeout=timeout, proxy=proxy)
        if not result.succeeded:
            if pages:
                logger.warning(f" [!] Listing for {url} stopped after {len(pages)} page(s): {result.error.value}")
                break
            result.candidate = url
            return result
        pages.append(result.payload['text'])
        marker = _next_marker(result.payload['text'])
        if not marker:
            break
    else:
        logger.warning(f" [!] Listing for {url} truncated at {max_pages} pages.")

    return ProbeResult(url, True, payload=pages)


def blob_download_probe(url, headers_factory, timeout=DEFAULT_HTTP_TIMEOUT, proxy=None):
    """Downloads one blob; unlike discovery probes this goes through fetch() and its retries."""
    try:
        response = fetch(url, headers=headers_factory(), timeout=timeout, proxy=proxy)
    except requests.exceptions.Timeout as e:
        return ProbeResult(url, False, error=ErrorKind.TIMEOUT, detail=str(e))
    except requests.exceptions.HTTPError as e:
        return ProbeResult(url, False, error=ErrorKind.HTTP_STATUS, detail=str(e.response.status_code))
    except requests.exceptions.RequestException as e:
        return ProbeResult(url, False, error=ErrorKind.TRANSPORT, detail=f"{type(e).__name__} - {e}")
    return ProbeResult(url, True, payload=response.content)
