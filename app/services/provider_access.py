from typing import Callable
import structlog
from app.core.exceptions import CredentialNotConfiguredError
from app.repositories.interfaces.assistant_provider import IAssistantProvider
from app.repositories.interfaces.credential_store import ICredentialStore

logger = structlog.get_logger()

ProviderFactory = Callable[[str], IAssistantProvider]


def open_provider(credential_store: ICredentialStore, provider_factory: ProviderFactory) -> IAssistantProvider:
    """Read the credential and build a provider for one operation.

    Raises CredentialNotConfiguredError when no key is stored.
    """
    api_key = credential_store.get()
    if not api_key:
        logger.warning("OpenAI API key not configured")
        raise CredentialNotConfiguredError()
    return provider_factory(api_key)
