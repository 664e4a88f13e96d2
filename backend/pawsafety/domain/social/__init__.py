"""Social domain exports."""

from .exceptions import SocialError  # noqa: F401
from .notifications import NotificationType  # noqa: F401
