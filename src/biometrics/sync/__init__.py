"""Remote-file sync for biometric readings.

Modules:
    state       - Versioned sync cursor and its single owner
    coordinator - One incremental pass: list, download, decode, cap, store
    scheduler   - Background periodic sync ticks
"""
