"""Shared-kitchen scheduling, booking and applicant qualification service."""

__version__ = "0.1.0"
