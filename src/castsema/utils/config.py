"""
Configuration constants to replace magic numbers throughout castsema
"""

# Data model (LP64): widths in bits
POINTER_BITS = 64
REGISTER_BITS = 64

# Integer literal ranges used to pick the type of an unsuffixed literal
INT_MAX = 2 ** 31 - 1
LONG_MAX = 2 ** 63 - 1

# Default literal types
DEFAULT_INT_TYPE = "int"
DEFAULT_FLOAT_TYPE = "double"
CHAR_LITERAL_TYPE = "char"
BOOL_LITERAL_TYPE = "bool"
NULL_LITERAL_TYPE = "nullptr_t"

# Builtin class types registered ahead of user declarations
BUILTIN_CLASS_NAMES = ("string",)

# Surface spellings of template names
TEMPLATE_ALIASES = {
    "vector": "sequence",
    "list": "sequence",
    "map": "ordered-mapping",
    "tuple": "fixed-arity-tuple",
    "unique_ptr": "unique-handle",
    "shared_ptr": "shared-handle",
}

# Namespace prefix dropped from qualified names
STD_NAMESPACE = "std"

# Exit codes of the analyze command
EXIT_CLEAN = 0
EXIT_FINDINGS = 1
EXIT_FATAL = 2

# File handling
DEFAULT_FILE_ENCODING = "utf-8"

# Report rendering
MAX_SEXPR_LINE = 100
