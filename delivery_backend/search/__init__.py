"""
Restaurant search.

Responsibilities:
- Project stored restaurants, menus and rating totals into a DataFrame.
- Filter by name, cuisine, location, price band and distance from the requester.
- Attach distances so callers can sort, and cache results per store version.
"""
