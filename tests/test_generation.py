import pytest

from skyveil.catalog import ServiceDescriptor, SERVICES, select_services, validate_catalog
from skyveil.errors import CandidateParseError, SetupError
from skyveil.phases.generation import (
    clean_entries, generate_candidates, count_candidates, validate_hostname,
    generate_container_urls, normalize_endpoint,
)

BLOB = ServiceDescriptor('storage-blob', 'Storage Accounts - Blobs', ('blob.core.windows.net',))
WEB = ServiceDescriptor('app-services', 'App Services', ('azurewebsites.net', 'scm.azurewebsites.net'))


def test_single_base_single_permutation_yields_seven_candidates():
    pairs = list(generate_candidates(["contoso"], [BLOB], ["dev"]))
    assert [name for _, name in pairs] == [
        "contoso.blob.core.windows.net",
        "contosodev.blob.core.windows.net",
        "contoso-dev.blob.core.windows.net",
        "contoso_dev.blob.core.windows.net",
        "devcontoso.blob.core.windows.net",
        "dev-contoso.blob.core.windows.net",
        "dev_contoso.blob.core.windows.net",
    ]
    assert {sid for sid, _ in pairs} == {'storage-blob'}


def test_candidate_count_matches_cartesian_product():
    bases = ["contoso", "fabrikam", "", "# comment", "  northwind  "]
    permutations = ["dev", "prod", "#skip", "  ", "test"]
    pairs = list(generate_candidates(bases, [BLOB, WEB], permutations))
    # 3 bases x 3 suffixes x (1 + 6 * 3 words)
    assert len(pairs) == 3 * 3 * 19
    assert count_candidates(bases, [BLOB, WEB], permutations) == len(pairs)


def test_no_duplicates_within_a_suffix_group():
    pairs = list(generate_candidates(["alpha", "beta"], [WEB], ["dev", "qa"]))
    for suffix in WEB.suffixes:
        names = [n for _, n in pairs if n.endswith("." + suffix) and n.count('.') == suffix.count('.') + 1]
        assert len(names) == len(set(names))


def test_no_permutations_gives_one_candidate_per_triple():
    pairs = list(generate_candidates(["contoso", "fabrikam"], [WEB]))
    assert pairs == [
        ('app-services', 'contoso.azurewebsites.net'),
        ('app-services', 'fabrikam.azurewebsites.net'),
        ('app-services', 'contoso.scm.azurewebsites.net'),
        ('app-services', 'fabrikam.scm.azurewebsites.net'),
    ]


def test_generation_is_stable_between_calls():
    first = list(generate_candidates(["contoso"], SERVICES, ["dev", "prod"]))
    second = list(generate_candidates(["contoso"], SERVICES, ["dev", "prod"]))
    assert first == second


def test_generation_is_lazy():
    gen = generate_candidates(["contoso"], SERVICES, ["dev"])
    assert next(gen) == ('tenant', 'contoso.onmicrosoft.com')


def test_clean_entries_trims_and_skips_comments():
    assert clean_entries(["  a ", "", "#b", "   ", "c\n"]) == ["a", "c"]
    assert clean_entries(None) == []


def test_validate_hostname():
    assert validate_hostname("Contoso_Dev.blob.core.windows.net") == "contoso_dev.blob.core.windows.net"
    for bad in ["", "foo bar.blob.core.windows.net", "a..b", "-x.azurewebsites.net", ("a" * 64) + ".net"]:
        with pytest.raises(CandidateParseError):
            validate_hostname(bad)


def test_container_urls_from_endpoint():
    urls = generate_container_urls("acct1.blob.core.windows.net", ["public", "#x", "", "/backups/"])
    assert urls == [
        "https://acct1.blob.core.windows.net/public",
        "https://acct1.blob.core.windows.net/backups",
    ]


def test_normalize_endpoint():
    assert normalize_endpoint("https://acct1.blob.core.windows.net/") == "https://acct1.blob.core.windows.net"
    for bad in ["", "ftp://acct1.blob.core.windows.net", "https://acct1.blob.core.windows.net/cont", "https://",
                "acct1.blob.core.windows.net:99999", "acct1.blob.core.windows.net:abc", "https://[::1"]:
        with pytest.raises(CandidateParseError):
            normalize_endpoint(bad)


def test_catalog_ids_are_unique_and_have_suffixes():
    validate_catalog(SERVICES)
    assert all(s.output_file == f"pub-{s.id}.txt" for s in SERVICES)


def test_duplicate_catalog_ids_are_rejected():
    with pytest.raises(SetupError):
        validate_catalog([BLOB, BLOB])


def test_service_without_suffixes_is_rejected():
    with pytest.raises(ValueError):
        ServiceDescriptor('empty', 'Empty', ())


def test_select_services_keeps_catalog_order():
    selected = select_services(SERVICES, ['storage-blob', 'tenant'])
    assert [s.id for s in selected] == ['tenant', 'storage-blob']
    assert select_services(SERVICES, []) == SERVICES
    with pytest.raises(SetupError):
        select_services(SERVICES, ['nope'])
