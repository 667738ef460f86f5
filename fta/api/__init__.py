"""
FTA API Service
HTTP endpoints over the ingest and analyze packages
"""
