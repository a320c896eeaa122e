"""
ErwinMVC CLI commands
"""
