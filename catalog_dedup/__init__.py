"""
Catalog Dedup - Offline entity resolution for the exercise catalog.

Clusters near-duplicate exercises, merges them into a canonical record,
caps the active catalog size and links media folders to records.
"""
