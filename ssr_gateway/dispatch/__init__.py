from .classifier import DEFAULT_REDIRECT_PREFIXES, classify, first_segment

__all__ = ["DEFAULT_REDIRECT_PREFIXES", "classify", "first_segment"]
