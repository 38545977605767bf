"""A small shell library: tokenizing, parsing, builtins, here-documents and pipeline execution."""

__version__ = "1.0.0"
__all__ = ["builtins", "environment", "executor", "heredoc", "lexer", "parser"]