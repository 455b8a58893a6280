"""
watcher/context — transcript assembly for the classifier prompt.
"""
