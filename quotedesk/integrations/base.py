from abc import ABC, abstractmethod

from quotedesk.common.logging import get_logger


def is_mock_endpoint(url: str) -> bool:
    """Endpoints configured as ``mock...`` (or left empty) are never called."""
    return not url or url.startswith("mock")


class BaseIntegration(ABC):
    """Common base for outbound HTTP collaborators.

    Subclasses get a namespaced logger and a request timeout, and must say
    whether the remote side is reachable via ``health_check``.
    """

    def __init__(self, name: str, timeout: float = 10.0):
        self.name = name
        self.timeout = timeout
        self.logger = get_logger(f"integrations.{name}")

    @abstractmethod
    async def health_check(self) -> bool:
        ...
