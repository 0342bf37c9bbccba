"""
Service layer: entitlements, credit ledger, billing and cover generation.
"""
