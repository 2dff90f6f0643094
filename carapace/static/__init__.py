"""Static analysis: built-in pattern and syntax-tree rules plus external tools."""

from __future__ import annotations

from carapace.static.runner import (
    StaticAnalysisOptions,
    StaticAnalysisResult,
    format_static_findings_for_ai,
    run_static_analysis,
)
from carapace.static.scanner import Scanner, ScannerRule, default_scanner, scan_file

__all__ = [
    "Scanner",
    "ScannerRule",
    "StaticAnalysisOptions",
    "StaticAnalysisResult",
    "default_scanner",
    "format_static_findings_for_ai",
    "run_static_analysis",
    "scan_file",
]
