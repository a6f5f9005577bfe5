from abc import ABC, abstractmethod
from typing import Optional


class ICredentialStore(ABC):
    """Interface for the single provider credential"""

    @abstractmethod
    def get(self) -> Optional[str]:
        """Return the stored API key, or None when it is not configured"""
        pass

    @abstractmethod
    def set(self, value: str) -> None:
        """Persist the API key"""
        pass

    def is_configured(self) -> bool:
        return bool(self.get())
