"""Release lock GitHub App.

Blocks pull request merges with a required check run while a deployment
workflow is in flight, and clears it when the deployment succeeds or
someone overrides it.
"""

__version__ = "0.1.0"
