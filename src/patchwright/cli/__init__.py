"""
CLI helpers.
"""
