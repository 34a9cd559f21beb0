"""cascade-release: version propagation for Cargo workspace releases.

Rewrites Cargo manifests in place without disturbing their formatting and
ripples version bumps through intra-workspace dependency edges.
"""
