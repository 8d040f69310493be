"""
API server package — HTTP/REST interface.

Runs flow analysis on submitted transaction records or on a wallet's
recently fetched transactions and returns the JSON report.
"""
