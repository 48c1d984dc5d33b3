"""Schema management for SQL-backed providers of the ordering domain."""

from protean.domain import Domain
from sqlalchemy import create_engine

_SQL_PROVIDERS = ("sqlite", "postgresql")

# Held by the client and saved as a JSON document in ``SavedCart``; never a table.
_UNSTORED = ("Cart", "CartItem")


def _sql_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in _SQL_PROVIDERS:
            yield provider


def stored_elements(domain: Domain, provider_name: str) -> list[type]:
    """Aggregates, entities and projections that get a table on ``provider_name``."""
    records = [
        *domain.registry.aggregates.values(),
        *domain.registry.entities.values(),
        *domain.registry.projections.values(),
    ]
    return [
        record.cls
        for record in records
        if record.cls.__name__ not in _UNSTORED and record.cls.meta_.provider == provider_name
    ]


def _load_models(domain: Domain, provider) -> None:
    """Touch each repository's DAO so its SQLAlchemy model joins the provider's metadata."""
    for cls in stored_elements(domain, provider.name):
        domain.repository_for(cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> list[str]:
    """Create tables for orders, checkout sessions, profiles and saved carts."""
    created = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            _load_models(domain, provider)
            provider._metadata.create_all(create_engine(provider.conn_info["database_uri"]))
            created.append(provider.name)
    return created


def drop_db(domain: Domain) -> list[str]:
    dropped = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            provider._metadata.drop_all(create_engine(provider.conn_info["database_uri"]))
            dropped.append(provider.name)
    return dropped
