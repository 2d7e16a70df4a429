from __future__ import annotations


class AssistantError(Exception):
    """Base error for circuit assistant failures."""


class ConfigurationError(AssistantError):
    pass


class TransportError(AssistantError):
    """Connection, write, read or timeout failure talking to the LLM API."""


class UpstreamStatusError(AssistantError):
    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        message = f"API call failed with response code: {status_code}"
        if body:
            message = f"{message}, error: {body}"
        super().__init__(message)
