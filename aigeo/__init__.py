"""
AI/GEO Audit API

Backend for the AI/GEO audit dashboard:
1. Pulls SERP, AI Overview and backlink data from DataForSEO
2. Reads Google Search Console and Google Business Profile metrics
3. Persists audits, keyword rankings and portfolio metrics in Supabase
4. Attributes AI Overview citations to pages and keywords
"""

__version__ = "0.1.0"
