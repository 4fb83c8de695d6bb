"""One-shot session resolution before the realtime connection is opened."""

from loguru import logger

from rtmbot.api.client import SessionInfo, SlackWebClient
from rtmbot.errors import BootstrapError


async def resolve_session(client: SlackWebClient) -> SessionInfo:
    """
    Resolve ``(endpoint, self_id)`` for a new realtime session.

    Raises:
        BootstrapError: If the platform rejects the call or returns no endpoint.
    """
    logger.info("Starting realtime session...")
    info = await client.rtm_start()
    if not info.endpoint:
        raise BootstrapError("Session resolution returned no endpoint")
    logger.info(f"Session resolved for bot user {info.self_id}")
    return info
