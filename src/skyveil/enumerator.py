from datetime import datetime
from functools import partial
from urllib.parse import urlparse

from .config import logger, DEFAULT_CONCURRENCY, DEFAULT_DNS_TIMEOUT, DEFAULT_DNS_LIFETIME, DEFAULT_HTTP_TIMEOUT
from .catalog import SERVICES, service_index
from .errors import CandidateParseError, PersistenceError
from .phases.generation import generate_candidates, generate_container_urls, validate_hostname, count_candidates
from .phases.probing import run_probes, dns_probe, http_probe, container_listing_probe, blob_download_probe
from .phases.classification import classify_dns, classify_blob_links, classify_container_listing, split_container_url, blob_url
from .phases.aggregation import HitAggregator, by_endpoint
from .utils.http_utils import base_headers, storage_headers
from .utils.output_utils import (
    reset_file, write_subdomain_report, subdomain_output_files, write_dns_diagnostics,
    write_storage_link_report, storage_link_output_files, write_container_report,
    container_output_files, write_blob_content, blob_path,
)


class RunSummary:
    def __init__(self, title, started, finished=None, found=0, output_files=()):
        self.title = title
        self.started = started
        self.finished = finished
        self.found = found
        self.output_files = list(output_files)

    @property
    def elapsed(self):
        return (self.finished or datetime.now()) - self.started

    def log(self):
        logger.info(f"\n--- {self.title} Complete ---")
        if self.found:
            logger.info(f"  Results found: {self.found}")
            for path in self.output_files:
                logger.info(f"  Saved: {path}")
        else:
            logger.info("No results found.")
        logger.info(f"  Started:  {self.started:%Y-%m-%d %H:%M:%S}")
        logger.info(f"  Finished: {self.finished:%Y-%m-%d %H:%M:%S}")
        logger.info(f"  Elapsed:  {self.elapsed}")


def _reset_outputs(paths):
    for path in paths:
        try:
            reset_file(path)
        except PersistenceError as e:
            logger.error(f" [!] {e}")


class SubdomainEnumerator:
    """Permutes base names across the service catalog and keeps every name that resolves."""

    def __init__(self, case, bases, permutations=None, services=SERVICES, threads=DEFAULT_CONCURRENCY,
                 timeout=DEFAULT_DNS_TIMEOUT, nameservers=(), verbose=False):
        self.case = case
        self.bases = list(bases)
        self.permutations = list(permutations or [])
        self.services = tuple(services)
        self.threads = threads
        self.timeout = timeout
        self.nameservers = tuple(nameservers)
        self.verbose = verbose

    def candidates(self):
        for service_id, name in generate_candidates(self.bases, self.services, self.permutations):
            try:
                yield service_id, validate_hostname(name)
            except CandidateParseError as e:
                logger.warning(f" [!] Skipping candidate: {e}")

    def run(self):
        started = datetime.now()
        logger.info(f"\n--- Subdomain enumeration for case '{self.case.name}' ---")
        self.case.ensure_dir()
        _reset_outputs(subdomain_output_files(self.case, self.services))

        total = count_candidates(self.bases, self.services, self.permutations)
        logger.info(f"[*] Resolving up to {total} candidates across {len(self.services)} services with {self.threads} threads...")

        probe = partial(dns_probe, nameservers=self.nameservers, timeout=self.timeout,
                        lifetime=max(self.timeout, DEFAULT_DNS_LIFETIME))
        batch = run_probes(self.candidates(), probe, concurrency=self.threads, label="DNS", verbose=self.verbose,
                           total=total)

        names = service_index(self.services)
        aggregator = HitAggregator(group_order=[s.id for s in self.services])
        for result in batch.succeeded:
            hit = classify_dns(result.tag, result)
            if aggregator.add(hit):
                logger.info(f" [+] {names[hit.service_id].display_name}: {hit.value}")

        if self.verbose:
            try:
                write_dns_diagnostics(self.case, batch.succeeded + batch.failed)
            except PersistenceError as e:
                logger.error(f" [!] {e}")

        written = write_subdomain_report(self.case, aggregator, self.services)
        summary = RunSummary("Subdomain Enumeration", started, datetime.now(), len(aggregator), written)
        summary.log()
        return summary


class StorageLinkScanner:
    """Fetches pages and pulls out every blob storage container they link to."""

    def __init__(self, case, urls, threads=DEFAULT_CONCURRENCY, timeout=DEFAULT_HTTP_TIMEOUT, verbose=False):
        self.case = case
        self.urls = list(urls)
        self.threads = threads
        self.timeout = timeout
        self.verbose = verbose

    def candidates(self):
        for url in self.urls:
            if '://' not in url:
                url = f"https://{url}"
            try:
                parsed = urlparse(url)
                parsed.port
            except ValueError:
                logger.warning(f" [!] Skipping malformed URL: {url}")
                continue
            if parsed.scheme not in ('http', 'https') or not parsed.netloc:
                logger.warning(f" [!] Skipping malformed URL: {url}")
                continue
            yield url

    def run(self):
        started = datetime.now()
        logger.info(f"\n--- Storage link scan for case '{self.case.name}' ---")
        self.case.ensure_dir()
        _reset_outputs(storage_link_output_files(self.case))

        probe = partial(http_probe, headers=base_headers(), timeout=self.timeout)
        batch = run_probes(self.candidates(), probe, concurrency=self.threads, label="HTTP", verbose=self.verbose)

        aggregator = HitAggregator(key=by_endpoint)
        for result in batch.succeeded:
            for hit in classify_blob_links(result):
                if aggregator.add(hit):
                    logger.info(f" [+] {hit.value}")

        written = write_storage_link_report(self.case, aggregator)
        summary = RunSummary("Storage Link Scan", started, datetime.now(), len(aggregator), written)
        summary.log()
        return summary


class ContainerEnumerator:
    """Tries anonymous listing on candidate containers and records every blob they expose."""

    def __init__(self, case, targets, threads=DEFAULT_CONCURRENCY, timeout=DEFAULT_HTTP_TIMEOUT,
                 include_versions=False, verbose=False):
        self.case = case
        self.targets = []
        for url in targets:
            if url not in self.targets:
                self.targets.append(url)
        self.threads = threads
        self.timeout = timeout
        self.include_versions = include_versions
        self.verbose = verbose

    @classmethod
    def from_wordlist(cls, case, endpoint, names, **kwargs):
        return cls(case, generate_container_urls(endpoint, names), **kwargs)

    @classmethod
    def from_rows(cls, case, rows, **kwargs):
        targets = []
        for row in rows:
            try:
                targets.append(row.url)
            except CandidateParseError as e:
                logger.warning(f" [!] Skipping row: {e}")
        return cls(case, targets, **kwargs)

    def endpoints(self):
        seen = []
        for url in self.targets:
            host = split_container_url(url)[0]
            if host not in seen:
                seen.append(host)
        return seen

    def run(self):
        started = datetime.now()
        logger.info(f"\n--- Container enumeration for case '{self.case.name}' ({len(self.targets)} containers) ---")
        self.case.ensure_dir()
        endpoints = self.endpoints()
        _reset_outputs(container_output_files(self.case, endpoints))

        probe = partial(container_listing_probe, headers_factory=storage_headers, timeout=self.timeout,
                        include_versions=self.include_versions)
        batch = run_probes(self.targets, probe, concurrency=self.threads, label="Container", verbose=self.verbose)

        aggregator = HitAggregator(group_order=endpoints, key=by_endpoint)
        public_containers = {}
        for result in batch.succeeded:
            host = split_container_url(result.candidate)[0]
            logger.info(f" [+] Public container: {result.candidate}")
            public_containers.setdefault(host, []).append(result.candidate)
            aggregator.extend(classify_container_listing(result))

        written = write_container_report(self.case, aggregator, public_containers, endpoints)
        found = len(aggregator) or sum(len(v) for v in public_containers.values())
        summary = RunSummary("Container Enumeration", started, datetime.now(), found, written)
        summary.log()
        return summary


class BlobDownloader:
    """Downloads listed blobs into storage/<endpoint>/<container>/blobs[/<versionId>]/<blobName>."""

    def __init__(self, case, rows, threads=DEFAULT_CONCURRENCY, timeout=DEFAULT_HTTP_TIMEOUT, verbose=False):
        self.case = case
        self.rows = list(rows)
        self.threads = threads
        self.timeout = timeout
        self.verbose = verbose

    def candidates(self):
        for row in self.rows:
            try:
                blob_path(self.case, row.endpoint, row.container, row.blob_name, row.version_id)
                yield row, blob_url(row.url, row.blob_name, row.version_id)
            except CandidateParseError as e:
                logger.warning(f" [!] Skipping blob: {e}")

    def run(self):
        started = datetime.now()
        logger.info(f"\n--- Blob download for case '{self.case.name}' ({len(self.rows)} blobs) ---")
        self.case.ensure_dir()

        probe = partial(blob_download_probe, headers_factory=storage_headers, timeout=self.timeout)
        batch = run_probes(self.candidates(), probe, concurrency=self.threads, label="Download", verbose=self.verbose)

        written = []
        for result in batch.succeeded:
            row = result.tag
            try:
                path = write_blob_content(self.case, row.endpoint, row.container, row.blob_name,
                                          row.version_id, result.payload)
            except (CandidateParseError, PersistenceError) as e:
                logger.error(f" [!] {e}")
                continue
            logger.info(f" [+] Downloaded {result.candidate} -> {path}")
            written.append(path)

        for result in batch.failed:
            logger.warning(f" [!] Could not download {result.candidate}: {result.error.value} {result.detail or ''}")

        summary = RunSummary("Blob Download", started, datetime.now(), len(written))
        summary.log()
        return summary
