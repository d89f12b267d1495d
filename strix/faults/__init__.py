"""
StrixFaults - Structured error types.

Errors in Strix are typed fault signals: each carries a stable code,
a domain and a severity, so handlers and logs can tell them apart
without string matching.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Severity: Severity levels
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
]
