"""Temporal client configuration and connection management."""

from temporalio.client import Client as TemporalClient

from welfare_grid.core.config import settings


class TemporalClientManager:
    """Manages Temporal client connection."""

    _client: TemporalClient | None = None

    async def get_client(self) -> TemporalClient:
        """Get or create Temporal client instance.

        Returns:
            TemporalClient: Connected Temporal client
        """
        if self._client is None:
            self._client = await TemporalClient.connect(
                f"{settings.temporal_host}:{settings.temporal_port}",
                namespace=settings.temporal_namespace,
            )
        return self._client

    def close(self) -> None:
        """Forget the client; the underlying connection is released with it."""
        self._client = None


# Global Temporal client manager instance
_temporal_manager = TemporalClientManager()


async def get_temporal_client() -> TemporalClient:
    """Get Temporal client instance.

    Returns:
        TemporalClient: Connected Temporal client
    """
    return await _temporal_manager.get_client()


def close_temporal_client() -> None:
    """Close Temporal client connection."""
    _temporal_manager.close()
