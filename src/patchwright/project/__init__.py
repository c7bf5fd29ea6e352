"""
Project scanning: ProjectFile map and summary.
"""

from .scanner import build_project_summary, find_main_file, load_project_file, scan

__all__ = ["scan", "load_project_file", "find_main_file", "build_project_summary"]
