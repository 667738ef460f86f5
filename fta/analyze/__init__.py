"""
FTA Analyze
Turns raw tickets into an AnalysisResult

Components:
- analyzer.py: TicketAnalyzer, the local deterministic analysis
- oracle.py: OracleAnalyzer, optional LLM analysis with local fallback
"""

from .analyzer import TicketAnalyzer, analyze_tickets
from .oracle import OracleAnalyzer, parse_oracle_reply

__all__ = ["TicketAnalyzer", "analyze_tickets", "OracleAnalyzer", "parse_oracle_reply"]
