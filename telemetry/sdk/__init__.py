"""
Minimal meter: instrument registration, label binding and collection.
"""
