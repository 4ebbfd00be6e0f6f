"""Diagnostics for outgoing messages."""

from .sampler import DIAGNOSTIC_ID_ALPHABET, DiagnosticSampler

__all__ = ["DIAGNOSTIC_ID_ALPHABET", "DiagnosticSampler"]
