from .run_trace import Replay, TraceEmitter, TraceStoreJSONL

__all__ = ["TraceEmitter", "TraceStoreJSONL", "Replay"]
