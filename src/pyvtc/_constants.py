"""Internal constants shared across the library."""

DEFAULT_STREAM_URL = "ws://localhost:25555"
DEFAULT_POLL_URL = "http://localhost:25555/api/ets2/telemetry"
DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_RECONNECT_DELAY_MS = 3000
DEFAULT_REQUEST_TIMEOUT = 5.0

#: Error text recorded on the connection state when a poll request fails.
POLL_FAILURE_MESSAGE = "Failed to connect to telemetry server"
STREAM_ERROR_MESSAGE = "WebSocket error"

# ------------------------------------------------------------------
# Unit conversions
# ------------------------------------------------------------------

#: Telemetry servers report speeds in m/s.
MPS_TO_KMH = 3.6
#: Cargo mass arrives in kg, delivery records use tonnes.
KG_PER_TONNE = 1000.0
#: Damage is reported as a 0-1 fraction.
DAMAGE_PERCENT_SCALE = 100.0


def poll_url_for_game(game: str, *, host: str = "localhost", port: int = 25555) -> str:
    """Build the polling endpoint for a game identifier (``ets2`` or ``ats``)."""
    slug = game.strip().lower()
    if not slug:
        raise ValueError("game must be non-empty")
    return f"http://{host}:{port}/api/{slug}/telemetry"
