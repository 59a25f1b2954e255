"""Authentication cookie sources.

``payload`` parses exported cookie JSON, ``chrome`` decrypts the host
Chrome profile's cookie store, and ``provider`` picks one source per run.
"""
