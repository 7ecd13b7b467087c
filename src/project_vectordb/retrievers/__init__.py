"""Retrieval helpers applied on top of raw vector-store results."""

from .vector import build_where_clause, first_query_batch, rank_results, similarity_from_distance

__all__ = ["build_where_clause", "first_query_batch", "rank_results", "similarity_from_distance"]
