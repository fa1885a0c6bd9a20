"""
Frontend: lark grammar and transformer producing the syntax tree.
"""

from .parser import Parser
from .transformer import CastsemaTransformer
