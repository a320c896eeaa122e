"""
ErwinMVC runtime library used by generated applications.
"""
