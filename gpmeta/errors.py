"""Exception taxonomy for catalog extraction."""

from __future__ import annotations


class ExtractionError(Exception):
    """Base class for all extraction failures.

    Attributes:
        kind: Object kind being read or resolved when the failure happened.
        oid: Catalog identifier of the offending object, when known.
    """

    def __init__(self, message: str, kind=None, oid: int | None = None):
        # ObjectKind members are reported by their catalog spelling
        self.kind = getattr(kind, "value", kind)
        self.oid = oid
        super().__init__(message)

    def __str__(self):
        msg = super().__str__()
        context = []
        if self.kind:
            context.append(f"kind={self.kind}")
        if self.oid:
            context.append(f"oid={self.oid}")
        if context:
            msg = f"{msg} ({', '.join(context)})"
        if self.__cause__ is not None:
            msg = f"{msg}: {type(self.__cause__).__name__}: {self.__cause__}"
        return msg


class CatalogConnectionError(ExtractionError, ConnectionError):
    """The connection or session became unusable. Fatal, never retried here."""


class DecodeError(ExtractionError):
    """A catalog row does not have the shape the reader expects."""


class UnknownReference(ExtractionError):
    """An identifier or name could not be resolved to a known object."""


class GraphError(ExtractionError):
    """A dependency edge points outside the extracted object set."""


class ExtractionCancelled(ExtractionError):
    """Extraction was cancelled by the caller or timed out."""
