"""
Parser

Source text -> Program (expression tree + type declaration set).

The grammar is parsed with lark's Earley parser: a C-style cast `(T*)p`
and a parenthesized expression share a prefix that only resolves a few
tokens later, which an LALR table cannot express.
"""

import logging
from pathlib import Path
from typing import Union

from lark import Lark
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, VisitError

from ..shared.errors import CastsemaError, ParseError
from ..shared.nodes import Program
from ..shared.source_location import SourceLocation
from ..utils.io_utils import read_source_file
from .transformer import CastsemaTransformer

logger = logging.getLogger("castsema.frontend.parser")

GRAMMAR_PATH = Path(__file__).parent / "grammar.lark"


class Parser:
    """Lark-backed parser; one instance can parse any number of sources."""

    def __init__(self):
        self.parser = Lark.open(
            str(GRAMMAR_PATH),
            start='program',
            parser='earley',
            lexer='basic',
            propagate_positions=True,
            maybe_placeholders=False,
        )
        self.transformer = CastsemaTransformer()

    def parse(self, source: str, source_file: str = "<input>") -> Program:
        self.transformer.current_file = source_file
        try:
            tree = self.parser.parse(source)
        except UnexpectedInput as e:
            raise ParseError(self._describe(e), self._location(e, source_file)) from e

        try:
            return self.transformer.transform(tree)
        except VisitError as e:
            if isinstance(e.orig_exc, CastsemaError):
                raise e.orig_exc from None
            raise

    def parse_file(self, path: Union[Path, str]) -> Program:
        return self.parse(read_source_file(path), str(path))

    @staticmethod
    def _describe(error: UnexpectedInput) -> str:
        if isinstance(error, UnexpectedEOF):
            return "unexpected end of input"
        if isinstance(error, UnexpectedCharacters):
            return f"unexpected character {error.char!r}"
        token = getattr(error, "token", None)
        if token is not None:
            return f"unexpected token {str(token)!r}"
        return "syntax error"

    @staticmethod
    def _location(error: UnexpectedInput, source_file: str) -> SourceLocation:
        line = getattr(error, "line", None)
        column = getattr(error, "column", None)
        if not isinstance(line, int) or line < 1:
            return SourceLocation(source_file, 1, 1)
        column = column if isinstance(column, int) and column > 0 else 1
        return SourceLocation(source_file, line, column, line, column + 1)
