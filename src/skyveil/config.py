import os
import sys
import logging

from .errors import SetupError

# User Agents for rotation
USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0',
]

DEFAULT_CONCURRENCY = 10
DEFAULT_CASES_DIR = 'cases'

# Quick DNS timeout: per-nameserver try and overall lifetime, in seconds
DEFAULT_DNS_TIMEOUT = 2.0
DEFAULT_DNS_LIFETIME = 4.0
DEFAULT_HTTP_TIMEOUT = 10

STORAGE_API_VERSION = '2021-08-06'

# Logger setup (can be customized)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger('skyveil')


def set_verbosity(verbose):
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _env_number(name, default, cast):
    raw = os.getenv(name, '').strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise SetupError(f"Environment variable {name} must be a number, got {raw!r}")
    if value <= 0:
        raise SetupError(f"Environment variable {name} must be positive, got {raw!r}")
    return value


# Settings (loaded from env vars, CLI flags take precedence)
def load_settings():
    nameservers = [ns.strip() for ns in os.getenv('SKYVEIL_NAMESERVERS', '').split(',') if ns.strip()]
    return {
        'cases_dir': os.getenv('SKYVEIL_CASES_DIR', '').strip() or DEFAULT_CASES_DIR,
        'concurrency': _env_number('SKYVEIL_CONCURRENCY', DEFAULT_CONCURRENCY, int),
        'timeout': _env_number('SKYVEIL_TIMEOUT', None, float),
        'nameservers': nameservers,
    }
