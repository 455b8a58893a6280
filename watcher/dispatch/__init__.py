from watcher.dispatch.dispatcher import ActionDispatcher

__all__ = ["ActionDispatcher"]
