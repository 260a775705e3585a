from __future__ import annotations


class ContractsError(RuntimeError):
    """Base error for contracts package failures"""


class ContractsResourceError(ContractsError):
    """
    Raised when a required contract resource file cannot be located or read

    Raised as a RuntimeError rather than FileNotFoundError so callers can tell
    a mispackaged `contracts` wheel apart from a missing user path.
    """


class ManifestValidationError(ContractsError):
    """Boot manifest did not validate against the shipped JSON schema"""
