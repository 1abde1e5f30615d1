"""
Courier dispatch.

Responsibilities:
- Create courier assignments for orders, at most one active per order.
- Advance assignments ASSIGNED -> PICKED_UP -> DELIVERED, or cancel them.
- Mirror pickup and delivery onto the order inside the same store transaction.
"""
