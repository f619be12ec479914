"""
QueryPilot

Natural-language-to-SQL routing and generation for the entities and DMS
databases.
"""

__version__ = "0.1.0"
