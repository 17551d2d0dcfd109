import csv
import os
from dataclasses import dataclass
from typing import Optional

from ..config import logger
from ..errors import SetupError, CandidateParseError
from ..phases.generation import clean_entries, normalize_endpoint
from ..phases.classification import split_container_url


def read_wordlist(path):
    if not path or not os.path.isfile(path):
        raise SetupError(f"Input file not found: {path}")
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        entries = clean_entries(f)
    logger.info(f"Loaded {len(entries)} entries from {path}.")
    return entries


def resolve_values(values=None, path=None):
    """Literal command line values, a newline-delimited file, or both."""
    entries = clean_entries(values)
    if path:
        entries.extend(read_wordlist(path))
    return entries


@dataclass(frozen=True)
class RowByValue:
    value: str
    blob_name: Optional[str] = None
    version_id: Optional[str] = None

    @property
    def url(self):
        value = self.value if '://' in self.value else f"https://{self.value}"
        host, _, container = split_container_url(value)
        if not host or not container:
            raise CandidateParseError(f"Value is not a container URL: {self.value!r}")
        return f"{normalize_endpoint(host)}/{container}"

    @property
    def endpoint(self):
        return split_container_url(self.url)[0]

    @property
    def container(self):
        return split_container_url(self.url)[2]


@dataclass(frozen=True)
class RowByEndpointContainer:
    endpoint_value: str
    container_value: str
    blob_name: Optional[str] = None
    version_id: Optional[str] = None

    @property
    def url(self):
        container = self.container_value.strip().strip('/')
        if not container or '/' in container:
            raise CandidateParseError(f"Malformed container name: {self.container_value!r}")
        return f"{normalize_endpoint(self.endpoint_value)}/{container}"

    @property
    def endpoint(self):
        return split_container_url(self.url)[0]

    @property
    def container(self):
        return split_container_url(self.url)[2]


def _cell(row, name):
    value = row.get(name)
    return value.strip() if value and value.strip() else None


def parse_storage_row(row, require_blob=False):
    blob_name = _cell(row, 'BlobName')
    version_id = _cell(row, 'VersionId')
    if require_blob and not blob_name:
        raise CandidateParseError("row has no BlobName")

    endpoint, container = _cell(row, 'Endpoint'), _cell(row, 'Container')
    if endpoint and container:
        parsed = RowByEndpointContainer(endpoint, container, blob_name, version_id)
    elif _cell(row, 'Value'):
        parsed = RowByValue(_cell(row, 'Value'), blob_name, version_id)
    else:
        raise CandidateParseError("row has neither Value nor Endpoint+Container")
    # Resolve the URL now so malformed rows fail here rather than mid-batch
    parsed.url
    return parsed


def read_storage_csv(path, require_blob=False):
    """
    Reads a storage CSV (Value, or Endpoint+Container; plus BlobName/VersionId for downloads).

    Missing required columns are fatal; individual malformed rows are logged and skipped.
    """
    if not path or not os.path.isfile(path):
        raise SetupError(f"Input file not found: {path}")

    with open(path, 'r', encoding='utf-8-sig', newline='') as f:
        reader = csv.DictReader(f)
        columns = {c.strip() for c in (reader.fieldnames or []) if c}
        if 'Value' not in columns and not {'Endpoint', 'Container'} <= columns:
            raise SetupError(f"{path} must have a Value column or Endpoint and Container columns")
        if require_blob and 'BlobName' not in columns:
            raise SetupError(f"{path} must have a BlobName column")

        rows = []
        for line_no, raw in enumerate(reader, start=2):
            row = {(k or '').strip(): v for k, v in raw.items()}
            try:
                rows.append(parse_storage_row(row, require_blob))
            except CandidateParseError as e:
                logger.warning(f" [!] Skipping {path} line {line_no}: {e}")
    logger.info(f"Loaded {len(rows)} storage rows from {path}.")
    return rows
