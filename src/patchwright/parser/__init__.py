"""
Markup indexing for component files.
"""

from .jsx_indexer import ASTIndexer, describe_nodes
from .config import INDEXER_CONFIG, LANGUAGE_BY_EXTENSION

__all__ = ["ASTIndexer", "describe_nodes", "INDEXER_CONFIG", "LANGUAGE_BY_EXTENSION"]
