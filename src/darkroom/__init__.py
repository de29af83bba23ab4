"""Job scheduling and execution service for the photography content site."""

__version__ = "1.0.0"
