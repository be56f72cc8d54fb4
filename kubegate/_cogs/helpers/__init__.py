"""
General-purpose helpers not related to the cluster routing itself,
which are used to prepare and control the runtime environment.

Helpers do not depend on anything else in the package. They implement
no entities or behaviours of the multi-cluster domain, only some low-level
patterns that could be extracted as reusable libraries.
"""
