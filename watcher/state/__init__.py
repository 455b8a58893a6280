"""
watcher/state — durable processing cursor.
"""
