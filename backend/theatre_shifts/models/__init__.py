from .show import Show
from .show_date import ShowDate
from .show_interval import ShowInterval
from .participant import Participant
from .shift import Shift
from .sent_email import SentEmail

__all__ = [
    "Show",
    "ShowDate",
    "ShowInterval",
    "Participant",
    "Shift",
    "SentEmail",
]
