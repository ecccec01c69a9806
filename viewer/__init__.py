"""Map viewer and administration console for a location-tracking backend."""
import time

# Sent to every WebSocket client on connect so the page can detect restarts
STARTUP_TIMESTAMP: int = int(time.time())
