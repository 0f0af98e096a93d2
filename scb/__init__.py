"""Search Cluster Bootstrap (SCB).

Provision-time planning and node-time bootstrap for a multi-role search cluster:
 - topology planning (seed election, fixed-size capacity groups)
 - per-role configuration rendering from a base template and overlays
 - an idempotent supervisor that converges the search service and the
   traffic-capture sidecar on a node

The implementation is intentionally small so it can be audited and explained.
"""
