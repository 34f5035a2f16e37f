"""
Error taxonomy for the verification workflow.

Every error carries a stable `code` (sent to the frontend) and a
user-facing `message`. `status_code` is what the API exception handler
returns when one of these escapes a route.
"""


class KycError(Exception):
    code = "KYC_ERROR"
    status_code = 500
    default_message = "Unexpected verification error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class DeviceAccessError(KycError):
    """Camera could not be opened or stopped delivering frames."""
    code = "CAMERA_ACCESS_DENIED"
    status_code = 503
    default_message = "Camera permission is required for KYC."


class TransportError(KycError):
    """AI or persistence call failed before a usable response arrived."""
    code = "TRANSPORT_ERROR"
    status_code = 502
    default_message = "Unable to reach the AI service."


class AnalysisTimeoutError(TransportError):
    code = "ANALYSIS_TIMEOUT"
    status_code = 504
    default_message = "Analysis timed out"


class MalformedResponseError(TransportError):
    code = "MALFORMED_RESPONSE"
    default_message = "Invalid JSON response from AI"


class PersistenceError(KycError):
    code = "PERSISTENCE_ERROR"
    status_code = 503
    default_message = "Cloud sync failed."


class ConfigurationError(KycError):
    code = "CONFIGURATION_ERROR"
    status_code = 503
    default_message = "Firebase is not configured. Please add your API keys."


class InvalidTransitionError(KycError):
    code = "INVALID_TRANSITION"
    status_code = 409
    default_message = "Action not allowed in the current verification stage."
