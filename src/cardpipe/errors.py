from __future__ import annotations


class PipelineError(ValueError):
    """Raised when pipeline text cannot be parsed or is structurally invalid."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        self.reason = message
        super().__init__(f"Line {line}: {message}" if line is not None else message)
