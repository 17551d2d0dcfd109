import csv
import os
import re

from ..config import logger, DEFAULT_CASES_DIR
from ..errors import SetupError, PersistenceError, CandidateParseError

_ILLEGAL_CHARS = re.compile(r'[\\/:*?"<>|\s]')

SUBDOMAINS_FILE = 'pub-subdomains.txt'
SERVICES_DIR = 'services'
STORAGE_DIR = 'storage'
DNS_RESULTS_DIR = 'dns-results'
STORAGE_LINKS_FILE = 'pub-storageblobs.txt'
STORAGE_CONTAINERS_FILE = 'pub-storagecontainers.csv'
CONTAINER_BLOBS_FILE = 'pub-storagecontainerblobs.csv'
ENDPOINT_BLOBS_FILE = 'pub-blobs.csv'
ENDPOINT_CONTAINERS_FILE = 'pub-containers.txt'

CONTAINER_FIELDS = ['Value', 'Endpoint', 'StorageAccount', 'Container']
BLOB_FIELDS = CONTAINER_FIELDS + ['BlobName', 'VersionId', 'ContentType']


def safe_component(value):
    return _ILLEGAL_CHARS.sub('_', value.strip())


def normalize_case_name(name):
    """' My Case/2024 ' -> 'my_case_2024'"""
    normalized = safe_component((name or '').strip().lower())
    if not normalized or not normalized.strip('.'):
        raise SetupError(f"Invalid case name: {name!r}")
    return normalized


class Case:
    def __init__(self, name, root=DEFAULT_CASES_DIR):
        self.name = normalize_case_name(name)
        self.root = root
        self.path = os.path.join(root, self.name)

    def ensure_dir(self, *parts):
        path = os.path.join(self.path, *parts)
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not create directory {path}: {e}")
        return path

    def file(self, *parts):
        return os.path.join(self.path, *parts)

    def __repr__(self):
        return f"Case({self.name!r}, path={self.path!r})"


def reset_file(path):
    """Truncates an output file so a run never appends to a previous run's findings."""
    try:
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w', encoding='utf-8'):
            pass
    except OSError as e:
        raise PersistenceError(f"Could not reset {path}: {e}")


def write_lines(path, lines):
    try:
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w', encoding='utf-8', newline='\n') as f:
            for line in lines:
                f.write(f"{line}\n")
    except OSError as e:
        raise PersistenceError(f"Could not write {path}: {e}")


def write_csv(path, rows, fieldnames):
    try:
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction='ignore')
            writer.writeheader()
            for row in rows:
                writer.writerow(row)
    except OSError as e:
        raise PersistenceError(f"Could not write {path}: {e}")


def _hit_row(hit):
    return {
        'Value': hit.value,
        'Endpoint': hit.endpoint or '',
        'StorageAccount': hit.storage_account or '',
        'Container': hit.container or '',
        'BlobName': hit.blob_name or '',
        'VersionId': hit.version_id or '',
        'ContentType': hit.content_type or '',
    }


def subdomain_output_files(case, services):
    files = [case.file(SUBDOMAINS_FILE)]
    files.extend(case.file(SERVICES_DIR, s.output_file) for s in services)
    return files


def write_subdomain_report(case, aggregator, services):
    """pub-subdomains.txt grouped by service, plus one services/pub-<id>.txt per selected service."""
    groups = aggregator.groups()
    names = {s.id: s.display_name for s in services}
    written = []

    for service in services:
        path = case.file(SERVICES_DIR, service.output_file)
        try:
            write_lines(path, [hit.value for hit in groups.get(service.id, [])])
            written.append(path)
        except PersistenceError as e:
            logger.error(f" [!] {e}. Results for {service.display_name} were not saved.")

    lines = []
    for group, hits in groups.items():
        lines.append(f"# {names.get(group, group)}")
        lines.extend(hit.value for hit in hits)
        lines.append('')
    path = case.file(SUBDOMAINS_FILE)
    try:
        write_lines(path, lines)
        written.append(path)
    except PersistenceError as e:
        logger.error(f" [!] {e}. The aggregate subdomain list was not saved.")
    return written


def storage_link_output_files(case):
    return [case.file(STORAGE_LINKS_FILE), case.file(STORAGE_CONTAINERS_FILE)]


def write_storage_link_report(case, aggregator):
    hits = aggregator.all_hits()
    written = []
    for path, writer in (
        (case.file(STORAGE_LINKS_FILE), lambda p: write_lines(p, [hit.value for hit in hits])),
        (case.file(STORAGE_CONTAINERS_FILE), lambda p: write_csv(p, [_hit_row(hit) for hit in hits], CONTAINER_FIELDS)),
    ):
        try:
            writer(path)
            written.append(path)
        except PersistenceError as e:
            logger.error(f" [!] {e}")
    return written


def endpoint_dir(endpoint):
    return os.path.join(STORAGE_DIR, safe_component(endpoint))


def container_output_files(case, endpoints):
    files = [case.file(CONTAINER_BLOBS_FILE)]
    for endpoint in endpoints:
        files.append(case.file(endpoint_dir(endpoint), ENDPOINT_BLOBS_FILE))
        files.append(case.file(endpoint_dir(endpoint), ENDPOINT_CONTAINERS_FILE))
    return files


def write_container_report(case, aggregator, public_containers, endpoints=()):
    """
    Aggregate blob CSV for the run plus storage/<endpoint>/pub-blobs.csv and pub-containers.txt.

    `public_containers` maps endpoint -> list of container URLs that allowed anonymous listing.
    Endpoints in `endpoints` with nothing found still get their files rewritten empty.
    """
    groups = aggregator.groups()
    written = []
    ordered_endpoints = list(endpoints)
    for endpoint in list(groups) + list(public_containers):
        if endpoint not in ordered_endpoints:
            ordered_endpoints.append(endpoint)

    for endpoint in ordered_endpoints:
        hits = groups.get(endpoint, [])
        try:
            path = case.file(endpoint_dir(endpoint), ENDPOINT_BLOBS_FILE)
            write_csv(path, [_hit_row(hit) for hit in hits], BLOB_FIELDS)
            written.append(path)
            path = case.file(endpoint_dir(endpoint), ENDPOINT_CONTAINERS_FILE)
            write_lines(path, public_containers.get(endpoint, []))
            written.append(path)
        except PersistenceError as e:
            logger.error(f" [!] {e}. Results for {endpoint} were not saved.")

    path = case.file(CONTAINER_BLOBS_FILE)
    try:
        write_csv(path, [_hit_row(hit) for hit in aggregator.all_hits()], BLOB_FIELDS)
        written.append(path)
    except PersistenceError as e:
        logger.error(f" [!] {e}")
    return written


def write_dns_diagnostics(case, results):
    """Raw per-candidate lookup dumps under dns-results/, only written in verbose runs."""
    directory = case.ensure_dir(DNS_RESULTS_DIR)
    for result in results:
        if result.succeeded:
            body = result.detail or '\n'.join(result.payload or [])
        else:
            body = result.error.value + (f": {result.detail}" if result.detail else '')
        path = os.path.join(directory, f"{safe_component(result.candidate)}-dns.txt")
        try:
            write_lines(path, [body])
        except PersistenceError as e:
            logger.debug(f" [!] {e}")


def blob_path(case, endpoint, container, blob_name, version_id=None):
    segments = [s for s in blob_name.replace('\\', '/').split('/') if s]
    if not segments or any(s in ('.', '..') for s in segments):
        raise CandidateParseError(f"Refusing unsafe blob name: {blob_name!r}")
    parts = [endpoint_dir(endpoint), safe_component(container), 'blobs']
    if version_id:
        parts.append(safe_component(version_id))
    parts.extend(safe_component(s) for s in segments)
    return case.file(*parts)


def write_blob_content(case, endpoint, container, blob_name, version_id, content):
    path = blob_path(case, endpoint, container, blob_name, version_id)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as f:
            f.write(content)
    except OSError as e:
        raise PersistenceError(f"Could not write blob {path}: {e}")
    return path
