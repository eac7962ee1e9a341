"""pufferwatch - Filter and monitor SMAPI logs."""

import logging

__version__ = "0.2.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
