"""
                        Services Module

Business logic behind the HTTP layer.

Services:
    - sessions: admin bearer tokens with TTL expiry
    - auth: login and the admin route guard
    - orders: order normalization, storage and change events
    - events: live SSE fan-out to admin dashboards
    - excel_manager: lock-protected Excel export
"""

from orderdesk.services.events import EventHub, get_event_hub
from orderdesk.services.orders import OrderRepository
from orderdesk.services.sessions import SessionStore, get_session_store

__all__ = [
    "EventHub",
    "get_event_hub",
    "OrderRepository",
    "SessionStore",
    "get_session_store",
]
