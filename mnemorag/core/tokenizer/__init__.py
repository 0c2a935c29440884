"""Tokenizer utilities for prompt budgeting."""

from mnemorag.core.tokenizer.tokenizer import Tokenizer

__all__ = ["Tokenizer"]
