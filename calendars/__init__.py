"""Google Calendar side of mail-cli.

Events are mirrored into the same local cache as mail and addressed by
local IDs; recurrence rules are stored without their ``RRULE:`` prefix.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
