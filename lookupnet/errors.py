"""
Exception types for lookupnet.

Both errors subclass ValueError: a rejected configuration or a malformed
record is a bad argument, and callers that already guard with
``except ValueError`` keep working.
"""


class LookupNetError(ValueError):
    """Base class for all lookupnet errors."""


class ConfigurationError(LookupNetError):
    """
    The requested topology or vocabulary cannot be synthesized.

    Raised before any parameter is built, so a caller never receives a
    partially populated parameter set.
    """


class DomainViolation(LookupNetError):
    """A lookup record breaks the domain assumptions (e.g. key1 == key2)."""
