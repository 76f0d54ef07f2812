"""
Cluster state aggregation and scaling for ECS services.

Reconciles the live state of a set of instances (cluster/service pairs) and
starts, stops or restarts their tasks through event rule targets.
"""
