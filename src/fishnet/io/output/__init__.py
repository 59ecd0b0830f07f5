from fishnet.io.output.events import JsonEventSink, analysis_event

__all__ = ["JsonEventSink", "analysis_event"]
