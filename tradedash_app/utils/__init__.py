"""
Utility functions module.

Time Semantics:
- All timestamps are timezone-aware UTC datetimes
- Components take an injectable ``clock`` callable so timers and staleness
  windows can be driven deterministically
- REST quotes are stamped when the request is issued, stream ticks on receipt
"""
