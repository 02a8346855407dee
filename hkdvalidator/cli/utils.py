import logging

logger = logging.getLogger("cli")
