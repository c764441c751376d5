"""
Payroll Kernel

Shared foundation for the payroll calculation engine:
- Typed exceptions with stable error codes
- Structured JSON logging with request-scoped context
- SQLAlchemy base, engine and transactional session scope
- Deterministic clock and workflow state-machine primitives
"""

__version__ = "0.1.0"
