"""
Read-only SQL playground: admission filter, execution boundary on the shared
pool, caller authorization and the `/api/query` endpoint.
"""
