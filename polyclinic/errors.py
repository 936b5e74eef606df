"""
Error kinds raised by the analysis pipeline.

Every exception carries a short ``user_message`` that the screen boundary
(web API or terminal) shows instead of the technical detail.
"""

ANALYSIS_FAILED = "Analysis failed, please try again."


class PolyclinicError(Exception):
    """Base class for all polyclinic errors."""
    user_message = ANALYSIS_FAILED


class ConfigurationMissing(PolyclinicError):
    """No credential is available to reach the remote model."""
    user_message = "The AI service is not configured. Please contact the administrator."


class ConfigurationInvalid(ConfigurationMissing):
    """A setting is present but outside what the model accepts."""


class RemoteUnavailable(PolyclinicError):
    """The model could not be reached (network, quota, provider outage)."""


class RemoteRejected(PolyclinicError):
    """The provider answered with an error for this request."""


class MalformedModelOutput(PolyclinicError):
    """No JSON object/array could be recovered from the model reply."""

    def __init__(self, message: str, snippet: str = ""):
        super().__init__(message)
        self.snippet = snippet


class UnknownSpecialty(PolyclinicError):
    """The requested specialty or mode is not in the specialty table."""
    user_message = "Unknown department or test."


class MissingInput(PolyclinicError):
    """A screen tried to submit without the inputs its mode requires."""
    user_message = "Please provide the required input before starting the analysis."
