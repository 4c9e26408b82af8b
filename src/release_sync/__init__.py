"""Release component sync.

Reads the component table from a release tracker issue, resolves each
component's branch or tag to a commit, and pins those refs in the
get_all_manifests.sh manifest.
"""

__version__ = "0.1.0"
