"""CRM workflow execution engine.

Runs user-authored node graphs in response to CRM domain events, persisting
a step-by-step execution record for every run.
"""

__version__ = "0.1.0"
