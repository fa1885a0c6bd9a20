"""
Source Location (Span)

Every syntax node and every diagnostic points back into the analyzed
input through one of these.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SourceLocation:
    """
    Source location of a node.

    - File, line, column (1-based)
    - Optional end line/column for caret underlines
    - Immutable (frozen) for hashability
    """
    file: str
    line: int
    column: int
    end_line: int = 0
    end_column: int = 0

    def __str__(self) -> str:
        """Format as file:line:column"""
        return f"{self.file}:{self.line}:{self.column}"
