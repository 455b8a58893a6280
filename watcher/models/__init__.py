"""
watcher/models — immutable records passed between pipeline stages.
"""
