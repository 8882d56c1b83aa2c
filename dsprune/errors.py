"""Object-scoped failures raised by the repository collaborator."""


class RepositoryError(Exception):
    """Base class for failures talking to the repository."""


class FetchFailure(RepositoryError):
    """An object, history or membership lookup failed."""


class PurgeFailure(RepositoryError):
    """The repository rejected or failed a range purge."""
