"""Internal constants shared across the library."""

BASE_URL = "https://fleet.example.com"
USER_AGENT = "fleetsync/1"

INITIAL_FETCH_ENDPOINT = "/api/dashboard/init"
PAGE_FETCH_ENDPOINT = "/api/dashboard/vehicles"

DEFAULT_CHANNEL = "/event/Vehicle_Status__e"
# Start from the newest event, no historical replay.
REPLAY_LATEST = -1

SPINNER_TEXT_INITIAL = "Loading vehicles…"
SPINNER_TEXT_MORE = "Loading more vehicles…"
