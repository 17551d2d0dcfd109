import re
from urllib.parse import urlparse

from ..errors import CandidateParseError

_LABEL_RE = re.compile(r'^[A-Za-z0-9_](?:[A-Za-z0-9_\-]*[A-Za-z0-9_])?$')


def clean_entries(lines):
    """Strips whitespace and drops blank and '#' comment entries."""
    cleaned = []
    for line in lines or []:
        entry = line.strip()
        if entry and not entry.startswith('#'):
            cleaned.append(entry)
    return cleaned


def permute(base, permutations=()):
    yield base
    for word in permutations:
        yield f"{base}{word}"
        yield f"{base}-{word}"
        yield f"{base}_{word}"
        yield f"{word}{base}"
        yield f"{word}-{base}"
        yield f"{word}_{base}"


def generate_candidates(bases, catalog, permutations=None):
    """
    Lazily yields (service_id, candidate) pairs for every service suffix and base name.

    Each base produces the bare name plus six joined forms per permutation word, so the
    total is len(bases) * len(suffixes) * (1 + 6 * len(permutations)) after cleaning.
    """
    bases = clean_entries(bases)
    words = clean_entries(permutations)
    for service in catalog:
        for suffix in service.suffixes:
            for base in bases:
                for name in permute(base, words):
                    yield service.id, f"{name}.{suffix}"


def count_candidates(bases, catalog, permutations=None):
    suffix_count = sum(len(s.suffixes) for s in catalog)
    return len(clean_entries(bases)) * suffix_count * (1 + 6 * len(clean_entries(permutations)))


def validate_hostname(name):
    if not name or len(name) > 253:
        raise CandidateParseError(f"Invalid hostname length: {name!r}")
    for label in name.rstrip('.').split('.'):
        if not label or len(label) > 63 or not _LABEL_RE.match(label):
            raise CandidateParseError(f"Invalid hostname label {label!r} in {name!r}")
    return name.lower()


def normalize_endpoint(endpoint):
    """Turns 'acct.blob.core.windows.net' or 'https://acct.blob.core.windows.net/' into 'https://host'."""
    raw = (endpoint or '').strip()
    if not raw:
        raise CandidateParseError("Empty endpoint")
    if '://' not in raw:
        raw = f"https://{raw}"
    try:
        parsed = urlparse(raw)
        port = parsed.port
    except ValueError as e:
        raise CandidateParseError(f"Malformed endpoint: {endpoint!r} ({e})") from e
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        raise CandidateParseError(f"Malformed endpoint: {endpoint!r}")
    if parsed.path.strip('/'):
        raise CandidateParseError(f"Endpoint must not carry a path: {endpoint!r}")
    validate_hostname(parsed.hostname)
    host = parsed.hostname if port is None else f"{parsed.hostname}:{port}"
    return f"{parsed.scheme}://{host}"


def generate_container_urls(endpoint, names):
    base = normalize_endpoint(endpoint)
    return [f"{base}/{name.strip('/')}" for name in clean_entries(names)]
