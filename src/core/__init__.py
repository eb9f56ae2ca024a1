"""
Core package for checkout-wide concerns: settings, structured logging,
the exception hierarchy and cryptographic helpers.
"""
