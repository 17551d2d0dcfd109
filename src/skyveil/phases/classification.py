import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlparse
from xml.etree import ElementTree

from ..config import logger
from ..errors import CandidateParseError

BLOB_URL_PATTERN = re.compile(
    r'https://(?P<storageacc>[0-9a-z]{3,24})\.blob\.core\.windows\.net/(?P<container>[0-9a-z\-_$]{3,63})/',
    re.IGNORECASE,
)

STORAGE_SERVICE_ID = 'storage'


@dataclass(frozen=True)
class Hit:
    service_id: str
    value: str
    endpoint: Optional[str] = None
    storage_account: Optional[str] = None
    container: Optional[str] = None
    blob_name: Optional[str] = None
    version_id: Optional[str] = None
    content_type: Optional[str] = None


def classify_dns(service_id, result):
    if not result.succeeded or not result.payload:
        return None
    return Hit(service_id=service_id, value=result.candidate)


def _log_header_signals(result):
    headers = {k.lower(): v for k, v in (result.payload.get('headers') or {}).items()}
    server = headers.get('server', '')
    if 'windows-azure-blob' in server.lower():
        logger.info(f" [+] {result.candidate} is served by Azure Blob Storage ({server})")
    if 'x-ms-blob-type' in headers:
        logger.info(f" [+] {result.candidate} returned a blob directly (x-ms-blob-type: {headers['x-ms-blob-type']})")


def classify_blob_links(result):
    """Extracts every unique storage container URL referenced in a 200 response body."""
    if not result.succeeded or not result.payload or result.payload.get('status') != 200:
        return []
    _log_header_signals(result)

    hits = []
    seen = set()
    for match in BLOB_URL_PATTERN.finditer(result.payload.get('text') or ''):
        account = match.group('storageacc').lower()
        container = match.group('container').lower()
        value = f"https://{account}.blob.core.windows.net/{container}/"
        if value in seen:
            continue
        seen.add(value)
        hits.append(Hit(
            service_id=STORAGE_SERVICE_ID,
            value=value,
            endpoint=f"{account}.blob.core.windows.net",
            storage_account=account,
            container=container,
        ))
    if hits:
        logger.info(f" [+] {len(hits)} storage container link(s) found on {result.candidate}")
    return hits


def split_container_url(url):
    """'https://acct.blob.core.windows.net/cont' -> ('acct.blob.core.windows.net', 'acct', 'cont')"""
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise CandidateParseError(f"Malformed container URL: {url!r} ({e})") from e
    host = parsed.netloc
    account = host.split('.', 1)[0] if host else None
    container = parsed.path.strip('/').split('/', 1)[0] or None
    return host, account, container


def blob_url(container_url, name, version_id=None):
    url = f"{container_url.rstrip('/')}/{quote(name, safe='/')}"
    if version_id:
        url += f"?versionid={quote(version_id, safe='')}"
    return url


def classify_container_listing(result, endpoint=None, container=None):
    """
    Parses the EnumerationResults pages of a public container listing into one Hit per blob.

    Malformed XML is logged and dropped for this endpoint only.
    """
    if not result.succeeded or not result.payload:
        return []

    host, account, parsed_container = split_container_url(result.candidate)
    endpoint = endpoint or host
    container = container or parsed_container

    hits = []
    for page in result.payload:
        try:
            root = ElementTree.fromstring(page.lstrip('\ufeff'))
        except ElementTree.ParseError as e:
            logger.warning(f" [!] Malformed listing XML from {result.candidate}: {e}")
            return []
        for blob in root.iter('Blob'):
            name = blob.findtext('Name')
            if not name:
                continue
            version_id = blob.findtext('VersionId') or None
            content_type = blob.findtext('Properties/Content-Type') or None
            hits.append(Hit(
                service_id=STORAGE_SERVICE_ID,
                value=blob_url(result.candidate, name, version_id),
                endpoint=endpoint,
                storage_account=account,
                container=container,
                blob_name=name,
                version_id=version_id,
                content_type=content_type,
            ))
    logger.info(f" [+] Public container {result.candidate}: {len(hits)} blob(s) listed")
    return hits
