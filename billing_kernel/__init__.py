"""
Billing Kernel - financial computation and sequential document engine

Field-service quotes, jobs and invoices priced and numbered with:
- Cent-exact totals from line items, discounts and tax
- Payment-term due date resolution
- Gapless, collision-free document numbering under concurrent writers
- Multi-installment payment plans with lazily derived status
"""

__version__ = "0.1.0"
