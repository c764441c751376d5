"""
Payroll modules: persistence, lifecycle and service facades.

Each sub-package follows the same shape:
    models.py     frozen dataclass DTOs and enums (zero I/O)
    orm.py        SQLAlchemy models with to_dto() / from_dto()
    workflows.py  lifecycle state machines (where the entity has one)
    service.py    transaction-owning service facade
"""
