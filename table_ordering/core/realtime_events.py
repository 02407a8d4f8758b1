"""Message types exchanged on the ``/ws`` realtime feed.

Shared by the server broadcaster and the client listeners, so this module
must stay free of web framework imports.
"""

NEW_ORDER = "NEW_ORDER"
ORDER_STATUS_UPDATE = "ORDER_STATUS_UPDATE"
PING = "PING"
PONG = "PONG"

ORDER_EVENT_TYPES = (NEW_ORDER, ORDER_STATUS_UPDATE)
