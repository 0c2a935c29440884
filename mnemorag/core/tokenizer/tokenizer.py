"""
Token counting and truncation for prompts sent to LLM providers.

Uses tiktoken for accurate OpenAI-compatible token counting with
character-based approximation as fallback.
"""

import tiktoken

from mnemorag.config import TokenizerConfig


class Tokenizer:
    """
    Token counter that keeps memory text and community context within
    the prompt budget.

    Usage:
        tokenizer = Tokenizer()
        count = tokenizer.count_tokens("Hello world")
        text = tokenizer.truncate(long_text, max_tokens=4000)
    """

    def __init__(self, config: TokenizerConfig | None = None):
        self.config = config or TokenizerConfig()
        self._encoder: tiktoken.Encoding | None = None

    @property
    def encoder(self) -> tiktoken.Encoding:
        """Lazy-load tiktoken encoder."""
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.config.model)
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """
        Count tokens using tiktoken, or the character ratio when the
        provider is "approximate".
        """
        if not text:
            return 0

        if self.config.provider == "approximate":
            return self.estimate_tokens(text)

        return len(self.encoder.encode(text))

    def estimate_tokens(self, text: str) -> int:
        """
        Fast approximate token count using character ratio.

        Args:
            text: Text to estimate tokens for

        Returns:
            Approximate token count
        """
        if not text:
            return 0
        return int(len(text) / self.config.chars_per_token)

    def truncate(self, text: str, max_tokens: int) -> str:
        """
        Cut text to at most max_tokens tokens.

        Args:
            text: Text to truncate
            max_tokens: Token budget

        Returns:
            The original text if it fits, else its leading max_tokens tokens
        """
        if not text or max_tokens <= 0:
            return ""

        if self.config.provider == "approximate":
            max_chars = int(max_tokens * self.config.chars_per_token)
            return text if len(text) <= max_chars else text[:max_chars]

        tokens = self.encoder.encode(text)
        if len(tokens) <= max_tokens:
            return text
        return self.encoder.decode(tokens[:max_tokens])
