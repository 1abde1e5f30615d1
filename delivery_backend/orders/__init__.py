"""
Order lifecycle.

Responsibilities:
- Validate placement requests against stored restaurants, menus and addresses.
- Capture unit prices at placement and compute the order total.
- Move orders through PENDING, PROCESSING, OUT_FOR_DELIVERY and DELIVERED,
  with CANCELLED reachable from any non-terminal state.
"""
