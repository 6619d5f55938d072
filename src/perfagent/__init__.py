"""perfagent - host telemetry agent.

Samples CPU, memory, processes and network on a fixed interval, buffers the
snapshots and delivers them in batches to a remote HTTP collector.
"""

__version__ = "0.1.0"
