"""
Exception types raised by the credential, registry and dispatch layers.

Upstream HTTP failures are not wrapped: they surface as ``httpx.HTTPError``
so the retry layer can read the response status directly.
"""


class ValuecaseError(Exception):
    """Base class for errors raised by this package"""


class AuthFailure(ValuecaseError):
    """The client-credentials exchange was rejected or could not be reached"""


class InvalidArgumentsError(ValuecaseError):
    """A tool invocation is missing a required argument or has one of the wrong type"""


class UnknownToolError(InvalidArgumentsError):
    """A tool invocation names a tool that is not in the registry"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")
