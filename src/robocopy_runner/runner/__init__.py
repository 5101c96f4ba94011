"""Task execution and result aggregation for ROBOCOPY job manifests.

A run validates the manifest, dispatches every copy task to a bounded pool
of workers (locally or on a remote host), classifies each result from the
tool exit code and log summary, and folds everything into one report that
drives the notification decision.
"""
