"""Entry point: wires all components and starts the gRPC server."""

from __future__ import annotations

import logging
import signal
import sys
from concurrent import futures

import grpc

import config
from nove.catalogue import TrackCatalogue, file_provider
from nove.service import ListeningServicer, add_ListeningServicer_to_server
from nove.session import ListeningSession

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_server(session: ListeningSession, catalogue: TrackCatalogue) -> grpc.Server:
    """Construct and configure the gRPC server with all dependencies wired.

    Args:
        session: The open :class:`~nove.session.ListeningSession`.
        catalogue: The loaded :class:`~nove.catalogue.TrackCatalogue`.

    Returns:
        A configured but not-yet-started :class:`grpc.Server`.
    """
    servicer = ListeningServicer(session=session, catalogue=catalogue)

    server = grpc.server(futures.ThreadPoolExecutor(max_workers=config.GRPC_MAX_WORKERS))
    add_ListeningServicer_to_server(servicer, server)
    server.add_insecure_port(f"{config.GRPC_SERVER_HOST}:{config.GRPC_SERVER_PORT}")
    return server


def main() -> None:
    """Initialise all components and start the gRPC server.

    Startup sequence:
    1. Open the local store and the listening session (loads the profile).
    2. Load the track catalogue, then keep it fresh in the background.
    3. Register ``SIGTERM``/``SIGINT`` shutdown handlers.
    4. Build and start the gRPC server.
    """
    logger.info("Opening local store at %s", config.NOVE_DB_PATH)
    session = ListeningSession.open(config.NOVE_DB_PATH)
    logger.info("Profile %s loaded.", session.profile.profile_id)

    catalogue = TrackCatalogue(
        provider=file_provider(config.CATALOGUE_PATH),
        refresh_interval_seconds=config.CATALOGUE_REFRESH_INTERVAL_SECONDS,
    )
    catalogue.refresh()
    catalogue.start_refresh_loop()

    server = build_server(session, catalogue)

    def handle_shutdown(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down.", sig_name)
        server.stop(grace=5)
        session.close()
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    server.start()
    logger.info(
        "Listening gRPC server on %s:%d",
        config.GRPC_SERVER_HOST,
        config.GRPC_SERVER_PORT,
    )
    server.wait_for_termination()


if __name__ == "__main__":
    main()
