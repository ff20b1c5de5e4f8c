"""State layer.

Connection lifecycle (tagged status + named events) and job lifecycle
(baseline tracking) live here.  Both are mutated only by their single
owner from event-loop callbacks.
"""
