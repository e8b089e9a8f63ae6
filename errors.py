"""
SchoolBooks — error types shared by the engine, the store and the surfaces.
"""


class LedgerError(Exception):
    """Base class for everything the bookkeeping engine raises on purpose."""


class ValidationError(LedgerError, ValueError):
    """One or more fields of a form are missing or invalid.

    `fields` maps each offending field to a short reason so the caller can
    show all problems at once instead of one per submit."""

    def __init__(self, fields):
        self.fields = dict(fields)
        detail = '; '.join(f"{k}: {v}" for k, v in self.fields.items())
        super().__init__(f"Invalid entry — {detail}")


class ImportFormatError(LedgerError, ValueError):
    """The file's header row does not match the book's column list."""

    def __init__(self, collection, problems, expected):
        self.collection = collection
        self.problems = list(problems)
        self.expected = list(expected)
        lines = '\n'.join(self.problems)
        super().__init__(
            f"File format doesn't match the {collection} export format:\n{lines}\n"
            f"Expected columns: {', '.join(self.expected)}")


class PersistenceFailure(LedgerError):
    """The store refused a write, or the record was never saved."""
