"""
ConectaBio backend package.

A FastAPI service for the link-in-bio page builder. Persistence, auth and
blob storage live in Supabase; this package owns layout reconciliation,
card and profile bookkeeping, and the document/scraper flows.
"""
