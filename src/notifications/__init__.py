"""Parent notifications: message templates, SMS dispatch and fan-out."""

from .gateway import CompositeNotificationGateway, LoggingNotificationGateway
from .messages import ParentContacts, render_message
from .sms import SmsNotificationGateway

__all__ = [
    "CompositeNotificationGateway",
    "LoggingNotificationGateway",
    "ParentContacts",
    "SmsNotificationGateway",
    "render_message",
]
