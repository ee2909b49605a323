"""
Projects and saved analyses (stored queries with a chart configuration).
"""
