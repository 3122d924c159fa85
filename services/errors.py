"""
Exceptions raised by the import pipeline.

Row-level validation problems are never raised; they are carried on the
rows themselves. These exceptions cover failures of a whole operation.
"""


class ImportPipelineError(Exception):
    """Base class for import operation failures."""

    def __init__(self, message: str, detail: str = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ImportStructureError(ImportPipelineError):
    """The file cannot be imported at all (no header, missing columns, unreadable)."""


class ImportSessionNotFound(ImportPipelineError):
    """No import session exists with the requested id."""

    def __init__(self, session_id):
        super().__init__(f"Import session {session_id} not found")
        self.session_id = session_id


class ImportPreconditionError(ImportPipelineError):
    """The session is not in a state that allows the requested transition."""


class ImportCommitError(ImportPipelineError):
    """The commit transaction failed and was rolled back."""

    def __init__(self, session_id, detail: str = None):
        super().__init__(
            "Import commit failed. No changes were applied.",
            detail=detail
        )
        self.session_id = session_id
