"""
Langfuse tracing for the notification jobs.

If keys are not set, everything still works: the @observe spans around the
job runs become no-ops.
"""

import logging
import os

from config import LANGFUSE_ENABLED, LANGFUSE_HOST, LANGFUSE_PUBLIC_KEY, LANGFUSE_SECRET_KEY

logger = logging.getLogger("medilog.tracing")


def configure_langfuse() -> bool:
    """Export our Langfuse keys for the @observe decorator. Call once at startup."""
    if not LANGFUSE_ENABLED:
        logger.info("Langfuse not configured, job tracing disabled")
        return False

    os.environ["LANGFUSE_PUBLIC_KEY"] = LANGFUSE_PUBLIC_KEY
    os.environ["LANGFUSE_SECRET_KEY"] = LANGFUSE_SECRET_KEY
    os.environ["LANGFUSE_HOST"] = LANGFUSE_HOST
    logger.info("Langfuse configured, traces at %s", LANGFUSE_HOST)
    return True
