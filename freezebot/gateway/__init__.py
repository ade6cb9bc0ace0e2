"""Remote gateway: GitHub REST client and its credential providers."""

from freezebot.config import AppConfig
from freezebot.errors import ValidationError
from freezebot.gateway.auth import InstallationTokenCache, StaticTokenProvider, TokenProvider
from freezebot.gateway.base import CheckConclusion, RemoteGateway
from freezebot.gateway.github import GitHubGateway


def make_token_provider(config: AppConfig) -> TokenProvider:
    """GitHub App installation tokens when app_id is set, else the static token."""
    if config.github.app_id is not None:
        key = config.github_private_key_resolved
        if not key:
            raise ValidationError("github.app_id is set but no private key (GITHUB_PRIVATE_KEY[_FILE])")
        return InstallationTokenCache(
            app_id=config.github.app_id,
            private_key=key,
            api_url=config.github.api_url,
            timeout=config.github.request_timeout,
        )
    token = config.github_token_resolved
    if not token:
        raise ValidationError("No GitHub credentials: set GITHUB_TOKEN or github.app_id + private key")
    return StaticTokenProvider(token)


def make_gateway(config: AppConfig) -> RemoteGateway:
    return GitHubGateway(
        make_token_provider(config),
        api_url=config.github.api_url,
        timeout=config.github.request_timeout,
        check_name=config.github.check_name,
    )


__all__ = [
    "CheckConclusion",
    "GitHubGateway",
    "InstallationTokenCache",
    "RemoteGateway",
    "StaticTokenProvider",
    "TokenProvider",
    "make_gateway",
    "make_token_provider",
]
