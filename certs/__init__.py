"""
Certificate authority for internal cluster identities.
"""
