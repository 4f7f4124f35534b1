DEFAULT_PROVIDER_URL = "https://passkey.1auth.box"
DEFAULT_STORAGE_KEY = "1auth-user"

# Popup window geometry used by the popup dialog variant
POPUP_WIDTH = 450
POPUP_HEIGHT = 600

# Execute-phase status polling: 120 attempts at 1.5s is roughly 3 minutes
STATUS_POLL_INTERVAL = 1.5
STATUS_POLL_MAX_ATTEMPTS = 120

# Hash wait after the dialog has closed
HASH_TIMEOUT = 120.0
HASH_INTERVAL = 2.0

REQUEST_TIMEOUT = 10.0

# Signed intents are valid for five minutes unless the developer config says otherwise
SIGNED_INTENT_EXPIRY_SECONDS = 5 * 60

USER_NOT_FOUND_MARKER = "User not found"
