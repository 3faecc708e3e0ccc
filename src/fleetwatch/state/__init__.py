"""Filter and selection state for the live tracking view.

Filtering is a pure function of the latest snapshot and the current
:class:`~fleetwatch.state.filters.FilterState`; the pipeline recomputes
it whenever either changes and keeps the selection consistent with it.
"""
