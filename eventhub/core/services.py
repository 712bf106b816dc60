"""
Per-app service registry.

The gateway builds one UserStore, EventStore and TokenService per Flask
app and stores them under app.extensions, so nothing relies on
process-wide singletons.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from flask import current_app

if TYPE_CHECKING:
    from eventhub.auth_service.store import UserStore
    from eventhub.auth_service.utils import TokenService
    from eventhub.events_service.store import EventStore

EXTENSION_KEY = "eventhub"


@dataclass
class Services:
    users: "UserStore"
    events: "EventStore"
    tokens: "TokenService"


def get_services() -> Services:
    """Return the services bound to the current Flask app."""
    return current_app.extensions[EXTENSION_KEY]
