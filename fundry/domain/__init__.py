"""
Pure investment-engine logic.

Nothing in this package performs I/O or reads the clock: services load the
data, pass it in, and persist whatever comes back.
"""
