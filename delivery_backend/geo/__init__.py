"""
Great-circle distance helpers.

Responsibilities:
- Compute Haversine distances on a spherical Earth of radius 6371 km.
- Report unknown coordinates with the -1 sentinel instead of raising.
- Provide a vectorised form for filtering many restaurants at once.
"""
