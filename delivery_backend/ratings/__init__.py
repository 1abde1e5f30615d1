"""
Ratings for delivered orders.

Responsibilities:
- Decide whether a customer may rate an order (delivered, theirs, not yet rated).
- Persist one rating per (order, role) and keep per-subject running totals.
- Serve average ratings for restaurants and couriers.
"""
