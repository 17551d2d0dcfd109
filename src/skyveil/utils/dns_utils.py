import dns.resolver

from ..config import logger, DEFAULT_DNS_TIMEOUT, DEFAULT_DNS_LIFETIME


def build_resolver(nameservers=(), timeout=DEFAULT_DNS_TIMEOUT, lifetime=DEFAULT_DNS_LIFETIME):
    """Fresh resolver per call; dnspython resolvers are not shared between worker threads."""
    resolver = dns.resolver.Resolver(configure=not nameservers)
    if nameservers:
        resolver.nameservers = list(nameservers)
    resolver.timeout = timeout
    resolver.lifetime = lifetime
    if not resolver.nameservers:
        logger.error("No DNS resolvers configured! DNS resolution will fail.")
    return resolver


def describe_answer(answer):
    rrset = getattr(answer, 'rrset', None)
    if rrset is not None:
        return rrset.to_text()
    return '\n'.join(str(record) for record in answer)
