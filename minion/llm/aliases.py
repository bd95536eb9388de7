"""User-facing provider aliases."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderAlias:
    provider: str  # canonical provider id
    base_url: str  # default regional endpoint


PROVIDER_ALIASES: dict[str, ProviderAlias] = {
    # Zhipu's mainland-China endpoint for the Z.ai GLM models
    "zhipu": ProviderAlias("zai", "https://open.bigmodel.cn/api/anthropic"),
    "bigmodel": ProviderAlias("zai", "https://open.bigmodel.cn/api/anthropic"),
    "deepseek": ProviderAlias("openai", "https://api.deepseek.com/v1"),
}


@dataclass(frozen=True)
class ResolvedProvider:
    provider: str
    base_url: str | None


def resolve_provider(provider: str, user_base_url: str | None = None) -> ResolvedProvider:
    """Map a provider name to its canonical id and endpoint.

    A user-supplied base URL always takes precedence over the alias default.
    Unknown names pass through unchanged.
    """
    alias = PROVIDER_ALIASES.get(provider.lower())
    if alias is None:
        return ResolvedProvider(provider=provider, base_url=user_base_url or None)
    return ResolvedProvider(provider=alias.provider, base_url=user_base_url or alias.base_url)
