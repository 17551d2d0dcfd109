import argparse
import sys

from .config import logger, load_settings, set_verbosity, DEFAULT_DNS_TIMEOUT, DEFAULT_HTTP_TIMEOUT
from .catalog import SERVICES, select_services
from .errors import SetupError, CandidateParseError
from .enumerator import SubdomainEnumerator, StorageLinkScanner, ContainerEnumerator, BlobDownloader
from .utils.input_utils import resolve_values, read_wordlist, read_storage_csv
from .utils.output_utils import Case

MIN_PYTHON = (3, 8)


def check_runtime(version_info=None):
    version_info = version_info or sys.version_info
    if tuple(version_info[:2]) < MIN_PYTHON:
        raise SetupError(f"Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ is required, running {version_info[0]}.{version_info[1]}")


def build_parser():
    parser = argparse.ArgumentParser(description="Unauthenticated Azure subdomain and storage discovery",
                                     formatter_class=argparse.RawTextHelpFormatter)
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-c", "--case", required=True, help="Case name; output goes to <cases dir>/<normalized case name>/")
    common.add_argument("--cases-dir", help="Root directory for cases (default: $SKYVEIL_CASES_DIR or ./cases).")
    common.add_argument("-t", "--threads", type=int, help="Maximum concurrent probes (default: 10).")
    common.add_argument("--timeout", type=float, help="Probe timeout in seconds.")
    common.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging and per-candidate DNS dumps.")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("subdomains", parents=[common], help="Permute base names across Azure service domains and resolve them.")
    p.add_argument("-b", "--base", action="append", default=[], help="Base name (repeatable), e.g. contoso.")
    p.add_argument("--bases-file", help="Newline-delimited file of base names.")
    p.add_argument("-p", "--permutations", help="Newline-delimited permutation wordlist.")
    p.add_argument("-s", "--service", action="append", default=[],
                   help="Restrict to a service id (repeatable). Known: " + ", ".join(s.id for s in SERVICES))
    p.add_argument("--nameserver", action="append", default=[], help="DNS server to query (repeatable).")

    p = sub.add_parser("storage-links", parents=[common], help="Scrape pages for blob storage container links.")
    p.add_argument("-u", "--url", action="append", default=[], help="URL to fetch (repeatable).")
    p.add_argument("--urls-file", help="Newline-delimited file of URLs.")

    p = sub.add_parser("containers", parents=[common], help="Find anonymously listable containers and their blobs.")
    p.add_argument("-e", "--endpoint", help="Storage endpoint, e.g. contoso.blob.core.windows.net")
    p.add_argument("-w", "--wordlist", help="Container name wordlist used with --endpoint.")
    p.add_argument("--csv", help="CSV with Value or Endpoint+Container columns (e.g. pub-storagecontainers.csv).")
    p.add_argument("--versions", action="store_true", help="Include blob versions in listings.")

    p = sub.add_parser("download", parents=[common], help="Download blobs listed in a CSV.")
    p.add_argument("--csv", required=True, help="CSV with Value or Endpoint+Container plus BlobName[, VersionId].")

    return parser


def build_runner(args, settings):
    case = Case(args.case, args.cases_dir or settings['cases_dir'])
    threads = args.threads or settings['concurrency']
    if threads < 1:
        raise SetupError("--threads must be at least 1")
    timeout = args.timeout or settings['timeout']
    http_timeout = timeout or DEFAULT_HTTP_TIMEOUT

    if args.command == "subdomains":
        bases = resolve_values(args.base, args.bases_file)
        if not bases:
            raise SetupError("No base names given; use --base or --bases-file.")
        permutations = read_wordlist(args.permutations) if args.permutations else []
        return SubdomainEnumerator(
            case, bases, permutations,
            services=select_services(SERVICES, args.service),
            threads=threads,
            timeout=timeout or DEFAULT_DNS_TIMEOUT,
            nameservers=args.nameserver or settings['nameservers'],
            verbose=args.verbose,
        )

    if args.command == "storage-links":
        urls = resolve_values(args.url, args.urls_file)
        if not urls:
            raise SetupError("No URLs given; use --url or --urls-file.")
        return StorageLinkScanner(case, urls, threads=threads, timeout=http_timeout, verbose=args.verbose)

    if args.command == "containers":
        options = dict(threads=threads, timeout=http_timeout, include_versions=args.versions, verbose=args.verbose)
        if args.csv:
            return ContainerEnumerator.from_rows(case, read_storage_csv(args.csv), **options)
        if not (args.endpoint and args.wordlist):
            raise SetupError("containers needs --csv, or --endpoint together with --wordlist.")
        try:
            return ContainerEnumerator.from_wordlist(case, args.endpoint, read_wordlist(args.wordlist), **options)
        except CandidateParseError as e:
            raise SetupError(str(e))

    if args.command == "download":
        rows = read_storage_csv(args.csv, require_blob=True)
        return BlobDownloader(case, rows, threads=threads, timeout=http_timeout, verbose=args.verbose)

    raise SetupError(f"Unknown command: {args.command}")


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    set_verbosity(args.verbose)

    try:
        check_runtime()
        settings = load_settings()
        runner = build_runner(args, settings)
        runner.run()
    except SetupError as e:
        logger.error(f"[!] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("[!] Interrupted. Re-run against the same case to rebuild its output files.")
        sys.exit(130)
    except Exception as e:
        logger.critical(f"An unhandled error occurred: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
