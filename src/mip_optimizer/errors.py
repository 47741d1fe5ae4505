class InvalidInputError(ValueError):
    """Malformed problem data, detected before any LP is solved."""


class OracleFailure(RuntimeError):
    """The LP oracle could not produce a solution for numerical reasons."""
