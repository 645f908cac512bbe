"""
AMSF Survey Filer
Blueprint registry.
"""
