from enum import Enum


class SkyVeilError(Exception):
    pass


class SetupError(SkyVeilError):
    """Raised before any probing starts: missing inputs, bad columns, unsupported runtime."""


class CandidateParseError(SkyVeilError):
    """A single base, endpoint or blob name could not be turned into a probe target."""


class PersistenceError(SkyVeilError):
    """An output group could not be written under the case directory."""


class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    TRANSPORT = "transport"
    # Resolver could not be reached at all; results for the whole batch are suspect
    INFRASTRUCTURE = "infrastructure"
    MALFORMED = "malformed"
    UNEXPECTED = "unexpected"
