"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from linkverse.core.config import Settings
from linkverse.core.cache import SharedCache
from linkverse.services.account import AccountService
from linkverse.services.add_link import AddLinkForm
from linkverse.services.enrichment import MetadataEnrichmentService
from linkverse.services.export import ExportService
from linkverse.services.gateway import RemoteDataGateway
from linkverse.services.links import LinkService
from linkverse.services.session import AuthSession


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Auth session (single signed-in owner per process)
    session = providers.Singleton(
        AuthSession,
        settings=settings
    )

    # Remote data gateway (BaaS REST tables)
    gateway = providers.Singleton(
        RemoteDataGateway,
        settings=settings,
        session=session
    )

    # Shared cache: one instance for every view and service
    cache = providers.Singleton(
        SharedCache,
        gateway=gateway,
        settings=settings
    )

    # Services
    enrichment_service = providers.Singleton(
        MetadataEnrichmentService,
        settings=settings
    )

    link_service = providers.Factory(
        LinkService,
        gateway=gateway,
        cache=cache
    )

    account_service = providers.Factory(
        AccountService,
        session=session,
        gateway=gateway,
        cache=cache
    )

    export_service = providers.Factory(
        ExportService,
        gateway=gateway,
        cache=cache
    )

    # Add-Link draft: one per process so URL analyses supersede each other
    add_link_form = providers.Singleton(
        AddLinkForm,
        enrichment=enrichment_service,
        links=link_service,
        cache=cache,
        settings=settings
    )


# Global container instance
container = Container()
