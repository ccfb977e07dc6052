"""Communication logging module.

Records requests, responses, unsolicited notifications and port events
exchanged with AT-speaking devices.
"""

from atlink.logging.log_models import LogEntry
from atlink.logging.communication_logger import CommunicationLogger

__all__ = ['LogEntry', 'CommunicationLogger']
