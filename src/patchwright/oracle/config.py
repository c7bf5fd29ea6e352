"""
Configuration for reasoning oracle backends.
"""

ORACLE_CONFIG = {
    "backend": "ollama",  # "ollama", "anthropic", or "none"
    "model": "llama3.1:8b",
    "temperature": 0.2,
    "max_tokens": 4000,
    "timeout": 120,  # Request timeout in seconds
    "api_base": "http://localhost:11434",  # Ollama default endpoint
}

ANTHROPIC_DEFAULT_MODEL = "claude-sonnet-4-20250514"

# Fenced code languages accepted when extracting generated source
CODE_FENCE_LANGUAGES = ("tsx", "typescript", "ts", "jsx", "javascript", "js")
