"""
Cache TTL classes and key layout.
"""

# Expiration classes in seconds
CACHE_TTLS = {
    "project_files": 7200,  # long: file snapshots
    "session_context": 3600,  # medium: SessionContext
    "session_state": 1800,  # short: generic keyed session state
    "changes": 3600,  # change log mirror
    "analysis": 3600,  # content-hash keyed analysis results
}

CACHE_KEYS = {
    "project_files": "project_files:{session_id}",
    "session_context": "session_context:{session_id}",
    "session_state": "session:{session_id}:{key}",
    "changes": "mod_changes:{session_id}",
    "analysis": "ast_analysis:{content_hash}",
}
