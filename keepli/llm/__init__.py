"""LLM - managed AI enrichment client"""
