"""
Module ORM Registry (``payroll_modules._orm_registry``).

Responsibility
--------------
Ensure every ``payroll_modules.*.orm`` module is imported so that
``Base.metadata`` holds all payroll tables before they are created.

Architecture position
---------------------
**Modules layer** -- utility.  ``payroll_kernel.db.engine.create_tables``
imports it lazily; nothing else in the kernel may.

Usage
-----
Scripts and ``tests/conftest.py`` call ``create_all_tables()``.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import every ORM module.  Idempotent.

    Companies and employees first: every other table references them.
    """
    # fmt: off
    import payroll_modules.employees.orm  # noqa: F401
    import payroll_modules.settings.orm  # noqa: F401
    import payroll_modules.allowances.orm  # noqa: F401
    import payroll_modules.adjustments.orm  # noqa: F401
    import payroll_modules.payroll.orm  # noqa: F401
    # fmt: on


def create_all_tables(engine: Engine | None = None) -> None:
    """Create every payroll table and register the paid-record guards.

    Preconditions:
        Engine initialized via ``init_engine_from_url()`` or passed in.
    """
    from payroll_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
