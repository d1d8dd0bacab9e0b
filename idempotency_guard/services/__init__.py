"""
Services Module
Key derivation, store backends and the idempotency coordinator
"""
