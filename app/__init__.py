"""Task notification queue service.

The package is a regular package so the local ``app`` always wins over any
similarly named distribution installed in site-packages.
"""
