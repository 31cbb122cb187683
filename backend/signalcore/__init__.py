"""Core signal logic: models, indicator synthesis, and scoring.

This package contains pure business logic with no I/O dependencies
(no database or network access). The service layer (signalhub/)
feeds it quotes and persists what it produces.
"""
