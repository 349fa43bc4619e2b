"""
Leads search service
Filtered lead listing with index-aware planning and a single-flight result cache
"""

__version__ = "1.0.0"
