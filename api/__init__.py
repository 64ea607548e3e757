"""
HTTP API package for the Business Card Scanning API.
"""
