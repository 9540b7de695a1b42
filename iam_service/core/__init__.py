"""
Core infrastructure: configuration, database, errors, mail, security
"""
