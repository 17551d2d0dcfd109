"""
Static catalog of Azure service families and the public DNS suffixes they live under.

Ids are part of the output contract: every id maps to ``services/pub-<id>.txt`` in a case,
so renaming one breaks anything that reads those files. Add new entries freely.
"""
from dataclasses import dataclass, field

from .errors import SetupError


@dataclass(frozen=True)
class ServiceDescriptor:
    id: str
    display_name: str
    suffixes: tuple
    output_file: str = field(default='')

    def __post_init__(self):
        if not self.suffixes:
            raise ValueError(f"Service {self.id!r} must declare at least one suffix")
        # frozen dataclass, so go through object.__setattr__ for the derived defaults
        object.__setattr__(self, 'suffixes', tuple(self.suffixes))
        if not self.output_file:
            object.__setattr__(self, 'output_file', f"pub-{self.id}.txt")


SERVICES = (
    ServiceDescriptor('tenant', 'Microsoft Hosted Domain', ('onmicrosoft.com',)),
    ServiceDescriptor('sharepoint', 'SharePoint', ('sharepoint.com',)),
    ServiceDescriptor('onedrive', 'OneDrive', ('my.sharepoint.com',)),
    ServiceDescriptor('email', 'Email', ('mail.protection.outlook.com',)),
    ServiceDescriptor('app-services', 'App Services', ('azurewebsites.net',)),
    ServiceDescriptor('app-services-mgmt', 'App Services - Management', ('scm.azurewebsites.net',)),
    ServiceDescriptor('static-web-apps', 'Static Web Apps', ('azurestaticapps.net',)),
    ServiceDescriptor('storage-blob', 'Storage Accounts - Blobs', ('blob.core.windows.net',)),
    ServiceDescriptor('storage-file', 'Storage Accounts - Files', ('file.core.windows.net',)),
    ServiceDescriptor('storage-queue', 'Storage Accounts - Queues', ('queue.core.windows.net',)),
    ServiceDescriptor('storage-table', 'Storage Accounts - Tables', ('table.core.windows.net',)),
    ServiceDescriptor('storage-dfs', 'Storage Accounts - Data Lake', ('dfs.core.windows.net',)),
    ServiceDescriptor('cosmos-db', 'Cosmos DB', ('documents.azure.com',)),
    ServiceDescriptor('sql-database', 'Databases - MSSQL', ('database.windows.net',)),
    ServiceDescriptor('key-vault', 'Key Vaults', ('vault.azure.net',)),
    ServiceDescriptor('api-management', 'API Services', ('azure-api.net',)),
    ServiceDescriptor('cdn', 'CDN', ('azureedge.net',)),
    ServiceDescriptor('front-door', 'Azure Front Door', ('azurefd.net',)),
    ServiceDescriptor('search', 'Search Appliance', ('search.windows.net',)),
    ServiceDescriptor('redis', 'Redis Cache', ('redis.cache.windows.net',)),
    ServiceDescriptor('container-registry', 'Container Registry', ('azurecr.io',)),
    ServiceDescriptor('service-bus', 'Service Bus', ('servicebus.windows.net',)),
    ServiceDescriptor('cloud-services', 'Cloud Services (Classic)', ('cloudapp.net',)),
    ServiceDescriptor('traffic-manager', 'Traffic Manager', ('trafficmanager.net',)),
)


def validate_catalog(catalog):
    seen = set()
    for service in catalog:
        if service.id in seen:
            raise SetupError(f"Duplicate service id in catalog: {service.id}")
        if not service.suffixes:
            raise SetupError(f"Service {service.id} has no DNS suffixes")
        seen.add(service.id)
    return catalog


def select_services(catalog, ids=None):
    """Returns the requested services in catalog order, or the whole catalog when ids is empty."""
    if not ids:
        return tuple(catalog)
    wanted = {i.strip().lower() for i in ids if i.strip()}
    known = {s.id for s in catalog}
    unknown = sorted(wanted - known)
    if unknown:
        raise SetupError(f"Unknown service id(s): {', '.join(unknown)}. Known: {', '.join(sorted(known))}")
    return tuple(s for s in catalog if s.id in wanted)


def service_index(catalog):
    return {s.id: s for s in catalog}


validate_catalog(SERVICES)
