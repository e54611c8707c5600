import logging

BRIDGE_LOGGER_NAME = "streambridge.services.bridge"


def configure_logging(log_level: str, *, bridge_diagnostics: bool = True) -> None:
    """Configure process-wide logging for the stream service.

    With ``bridge_diagnostics`` off, misuse warnings from bridges (pushes after
    completion and the like) are muted while real errors still surface.
    """

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger(BRIDGE_LOGGER_NAME).setLevel(logging.NOTSET if bridge_diagnostics else logging.ERROR)
