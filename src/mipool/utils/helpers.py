"""
Utility functions for pooled analyses.
"""

import numpy as np
import logging
from typing import Optional

from ..models.summary import SummaryResult


logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Set up logging configuration.
    
    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file to write logs to
    """
    log_level = getattr(logging, level.upper())
    
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def _format_cell(value: float, digits: int) -> str:
    if np.isnan(value):
        return "NA"
    if np.isinf(value):
        return "Inf" if value > 0 else "-Inf"
    return f"{value:.{digits}f}"


def format_results_table(summary: SummaryResult, title: str = "Pooled Estimates") -> str:
    """
    Format a pooled summary as a fixed-width table for reporting.
    
    Args:
        summary: Result of summarize()
        title: Title for the table
        
    Returns:
        Formatted table string
    """
    table = summary.table
    table_lines = [f"\n{title}", "=" * len(title)]
    
    headers = ["term"] + list(table.columns)
    table_lines.append(" | ".join(f"{h:>12}" for h in headers))
    table_lines.append("-" * (13 * len(headers) + len(headers) - 1))
    
    for term, row in table.iterrows():
        cells = [str(term)[:12]]
        for column, value in row.items():
            digits = 4 if column in ('p.value', 'riv', 'lambda', 'fmi') else 6
            if column == 'df':
                digits = 2
            cells.append(_format_cell(float(value), digits))
        table_lines.append(" | ".join(f"{cell:>12}" for cell in cells))
    
    for warning in summary.warnings:
        table_lines.append(f"Warning: {warning}")
    
    return "\n".join(table_lines)
