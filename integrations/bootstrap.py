from typing import Iterable


# (code, name, type, connector_key)
DEFAULT_PROVIDERS = [
    ("mock_accounting", "Mock accounting (sandbox)", "accounting", "mock"),
    ("mock_bank", "Mock bank (sandbox)", "bank", "mock_bank"),
]


def seed_default_providers(providers: Iterable[tuple] = DEFAULT_PROVIDERS) -> int:
    """Ensure the sandbox providers exist; existing rows are left untouched."""
    from .models import IntegrationProvider  # imported here to avoid AppConfig import cycles

    created_count = 0
    for code, name, provider_type, connector_key in providers:
        _, created = IntegrationProvider.objects.get_or_create(
            code=code,
            defaults={"name": name, "type": provider_type, "connector_key": connector_key},
        )
        if created:
            created_count += 1
    return created_count
