"""Service monitoring subsystem for servicewatch.

prober: per-service probe with partial-failure tolerance
snapshot_collector: inventory assembly and access statistics
differ: modified / new / removed classification
reporter: structured log events and console summary
monitor: one load -> collect -> diff -> save cycle
"""
