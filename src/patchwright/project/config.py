"""
Project scan settings.
"""

SCAN_CONFIG = {
    "extensions": [".js", ".jsx", ".ts", ".tsx"],
    "skip_dirs": ["node_modules", "build", "dist", "coverage"],
    # Generated UI kit, never edited by the engine
    "skip_relative_dirs": ["components/ui"],
    "snippet_lines": 15,
}
