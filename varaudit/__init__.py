"""varaudit - detection of possibly-uninitialized variables in PHP source."""

__version__ = "0.4.0"
